import pytest
from lcplatform.contracts.core import (
    CLASS_CODES, N_CLASSES, ClassCounts, ClassPalette, LandCoverClass, RGB8, RunError, Stage,
)

def test_enum_is_closed_six_classes():
    assert CLASS_CODES == (1, 2, 3, 4, 5, 6)
    assert N_CLASSES == 6
    assert LandCoverClass.WATER == 5 and LandCoverClass.BARE == 4
    assert LandCoverClass(1).label == "Forest"

def test_class_counts_default_and_lookup():
    c = ClassCounts()
    assert c.values == (800, 300, 800, 150, 100, 100)
    assert c.for_class(LandCoverClass.CROP) == 800
    assert c.as_mapping()[LandCoverClass.URBAN] == 100

@pytest.mark.parametrize("bad", [(1, 2, 3), (1, 2, 3, 4, 5, 6, 7)])
def test_class_counts_length_mismatch_rejected(bad):
    with pytest.raises(ValueError):
        ClassCounts(values=bad)

def test_class_counts_negative_rejected():
    with pytest.raises(ValueError):
        ClassCounts(values=(1, 1, 1, 1, 1, -1))

def test_palette_defaults_and_hex():
    p = ClassPalette()
    assert p.for_class(LandCoverClass.FOREST).to_hex() == "#006400"
    assert p.as_mapping()[5] == (0, 100, 200)
    assert RGB8.from_hex("#fa0000").as_tuple() == (250, 0, 0)
    with pytest.raises(ValueError):
        RGB8.from_hex("fff")

def test_palette_length_mismatch_rejected():
    with pytest.raises(ValueError):
        ClassPalette(colors=(RGB8(),))

def test_run_error_is_frozen():
    e = RunError(stage=Stage.MODELS, message="boom", model="SVM")
    assert e.stage is Stage.MODELS
    with pytest.raises(Exception):
        e.message = "x"

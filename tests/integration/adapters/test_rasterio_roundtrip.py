# tests/integration/adapters/test_rasterio_roundtrip.py
from datetime import date

import numpy as np
import pytest

rasterio = pytest.importorskip("rasterio")

from lcplatform.adapters.csv_scene_catalog import CsvSceneCatalog
from lcplatform.adapters.geotiff_imagery_provider import GeoTiffImageryProvider
from lcplatform.adapters.geotiff_reference_labels import GeoTiffReferenceLabels
from lcplatform.adapters.geotiff_terrain_provider import GeoTiffTerrainProvider
from lcplatform.adapters.rasterio_raster_reader import RasterioRasterReader
from lcplatform.adapters.rasterio_raster_writer import RasterioRasterWriter
from lcplatform.contracts.geo import Bounds, CRSRef, GeoRaster
from lcplatform.contracts.labels import DYNAMIC_WORLD, ESA_WORLDCOVER, LabelOrigin
from lcplatform.ports.raster_read import RasterReaderPort
from lcplatform.services.consensus_service import ConsensusService
from tests.factories import make_profile, make_stack

pytestmark = pytest.mark.integration

EXTENT = Bounds(500000.0, 129700.0, 500300.0, 130000.0)    # 10x10 px de 30 m


def _write(path, arr, dtype, nodata=None):
    arr = np.asarray(arr, dtype=dtype)
    count = 1 if arr.ndim == 2 else arr.shape[0]
    prof = make_profile(10, 10, dtype=np.dtype(dtype).name, nodata=nodata, count=count)
    return RasterioRasterWriter().write(str(path), GeoRaster(arr, prof))


def test_reader_satisfies_port():
    assert isinstance(RasterioRasterReader(), RasterReaderPort)


def test_write_read_roundtrip(tmp_path):
    arr = np.arange(100, dtype=np.float32).reshape(10, 10)
    uri = _write(tmp_path / "a" / "x.tif", arr, "float32")
    with rasterio.open(uri) as ds:
        assert ds.crs.to_epsg() == 32636
        assert tuple(ds.transform)[:6] == pytest.approx((30.0, 0.0, 500000.0, 0.0, -30.0, 130000.0))
    r = RasterioRasterReader().read_to_grid(uri, make_profile(10, 10, dtype="float32"), band_index=1)
    np.testing.assert_array_equal(r.data, arr)
    assert r.profile.nodata is None


def test_masked_pixels_become_nodata(tmp_path):
    data = np.ma.MaskedArray(np.full((10, 10), 3, dtype=np.int16), mask=False)
    data[2, 2] = np.ma.masked
    uri = RasterioRasterWriter().write(str(tmp_path / "m.tif"),
                                       GeoRaster(data, make_profile(10, 10, dtype="int16", nodata=0)))
    r = RasterioRasterReader().read_to_grid(uri, make_profile(10, 10, dtype="int16"), band_index=1)
    assert r.profile.nodata == 0
    assert r.data[2, 2] == 0
    assert r.valid_mask().sum() == 99


def test_masked_without_nodata_is_rejected(tmp_path):
    data = np.ma.MaskedArray(np.ones((10, 10), dtype=np.uint8), mask=True)
    with pytest.raises(ValueError):
        RasterioRasterWriter().write(str(tmp_path / "bad.tif"), GeoRaster(data, make_profile(10, 10, dtype="uint8")))


def test_read_to_coarser_grid(tmp_path):
    arr = np.repeat(np.repeat(np.arange(25, dtype=np.uint8).reshape(5, 5), 2, axis=0), 2, axis=1)
    uri = _write(tmp_path / "c.tif", arr, "uint8", nodata=255)
    grid = make_profile(5, 5, px=60.0, dtype="uint8")
    r = RasterioRasterReader().read_to_grid(uri, grid, band_index=1)
    assert r.data.shape == (5, 5)
    np.testing.assert_array_equal(r.data, np.arange(25).reshape(5, 5))
    assert r.profile.nodata == 255


def test_integer_file_without_nodata_keeps_zero_valid(tmp_path):
    uri = _write(tmp_path / "z.tif", np.zeros((10, 10)), "uint8")
    reader = RasterioRasterReader()

    r = reader.read_to_grid(uri, make_profile(10, 10, dtype="uint8"), band_index=1)
    assert r.profile.nodata is None
    assert r.valid_mask().all()

    # el respaldo marca solo lo que queda fuera de cobertura
    wide = reader.read_to_grid(uri, make_profile(12, 10, dtype="uint8"), band_index=1, nodata=255)
    assert wide.profile.nodata == 255
    assert wide.valid_mask()[:, :10].all()
    assert not wide.valid_mask()[:, 10:].any()


def test_imagery_provider_scales_and_masks_clouds(tmp_path):
    sr = np.full((6, 10, 10), 20000, dtype=np.uint16)
    sr[:, 9, 9] = 0                                        # relleno SR sin nodata declarado
    qa = np.full((10, 10), 1 << 6, dtype=np.uint16)        # despejado
    qa[0, 0] = (1 << 6) | (1 << 3)                         # nube
    uri = _write(tmp_path / "raw" / "s1.tif", np.concatenate([sr, qa[None]]), "uint16")
    csv = tmp_path / "scenes.csv"
    csv.write_text(f"scene_id,date,path\ns1,2025-02-01,{uri}\nold,2019-01-01,{uri}\n", encoding="utf-8")

    prov = GeoTiffImageryProvider(catalog=CsvSceneCatalog(csv), pixel_size=30.0)
    coll = prov.collection(EXTENT, CRSRef.from_epsg(32636), date(2025, 1, 1), date(2025, 12, 31))
    assert coll.scenes.shape == (1, 6, 10, 10)
    assert coll.dates == (date(2025, 2, 1),)
    assert np.isnan(coll.scenes[0, :, 0, 0]).all()
    assert np.isnan(coll.scenes[0, :, 9, 9]).all()
    assert coll.scenes[0, 0, 5, 5] == pytest.approx(20000 * 0.0000275 - 0.2, abs=1e-6)

    with pytest.raises(ValueError):
        prov.collection(EXTENT, CRSRef.from_epsg(32636), date(2030, 1, 1), date(2030, 12, 31))


def test_terrain_provider(tmp_path):
    dem = np.tile(np.arange(10) * 3.0, (10, 1)).astype(np.float32) + 1500.0
    dem_uri = _write(tmp_path / "dem.tif", dem, "float32")
    upa_uri = _write(tmp_path / "upa.tif", np.ones((10, 10)), "float32")
    hand_uri = _write(tmp_path / "hand.tif", np.full((10, 10), 4.0), "float32")
    grid = make_profile(10, 10)

    t = GeoTiffTerrainProvider(dem_uri=dem_uri, upstream_area_uri=upa_uri, hand_uri=hand_uri).terrain(grid)
    np.testing.assert_allclose(t.elevation.data, dem)
    assert t.slope.data[5, 5] == pytest.approx(np.degrees(np.arctan(0.1)), rel=1e-4)
    assert t.aspect.data[5, 5] == pytest.approx(270.0)
    assert t.hand.data[0, 0] == pytest.approx(4.0)


def test_dynamic_world_water_without_nodata_tag_survives_consensus(tmp_path):
    esa = _write(tmp_path / "esa.tif", np.full((10, 10), 80), "uint8", nodata=0)    # 80 = agua
    dw = _write(tmp_path / "dw.tif", np.zeros((10, 10)), "uint8")                   # 0 = agua, sin nodata
    grid = make_profile(12, 10)                                                      # 2 columnas fuera

    src = GeoTiffReferenceLabels(primary_uri=esa, secondary_uri=dw).sources(grid)
    assert src.secondary.profile.nodata == 255
    assert src.secondary.valid_mask()[:, :10].all()

    res = ConsensusService().run(src, ESA_WORLDCOVER, DYNAMIC_WORLD, make_stack(12, 10))
    valid = ~np.ma.getmaskarray(res.labels.data)
    assert valid[:, :10].all() and not valid[:, 10:].any()
    assert (np.ma.getdata(res.labels.data)[:, :10] == 5).all()
    assert res.origin_counts[LabelOrigin.CONSENSUS] == 100

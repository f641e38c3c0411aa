"""
Tests for geosync.client.transfer — GeoJSON import/export and permalinks.
"""
from __future__ import annotations

import json

import pytest

from geosync.client.state import Bounds, Viewport
from geosync.client.transfer import (
    export_view,
    load_collection,
    parse_collection,
    parse_permalink_fragment,
    permalink,
)
from tests.conftest import SAMPLE_ID, collection, make_api, point_feature


class TestParseCollection:
    def test_features_returned(self):
        text = json.dumps(collection(point_feature(SAMPLE_ID, 1, 2), point_feature(None, 3, 4)))
        assert len(parse_collection(text)) == 2

    def test_non_object_features_dropped(self):
        text = json.dumps({"type": "FeatureCollection", "features": [1, point_feature(None, 0, 0)]})
        assert len(parse_collection(text)) == 1

    @pytest.mark.parametrize(
        "document",
        [{"type": "Feature"}, {"type": "FeatureCollection"}, [], "x"],
    )
    def test_not_a_collection(self, document):
        with pytest.raises(ValueError, match="File is not a FeatureCollection"):
            parse_collection(json.dumps(document))

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_collection("{")

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "in.geojson"
        path.write_text(json.dumps(collection(point_feature(None, 0, 0))), encoding="utf-8")
        assert len(load_collection(path)) == 1


class TestExportView:
    @pytest.mark.asyncio
    async def test_writes_current_viewport(self, tmp_path):
        api = make_api()
        api.fetch_bbox.return_value = collection(point_feature(SAMPLE_ID, 0.5, 0.5))
        viewport = Viewport(Bounds(0, 0, 1, 1), zoom=10)
        target = tmp_path / "features.geojson"

        count = await export_view(api, viewport, target)

        assert count == 1
        api.fetch_bbox.assert_awaited_once_with(viewport.bounds)
        written = json.loads(target.read_text(encoding="utf-8"))
        assert written["type"] == "FeatureCollection"
        assert written["features"][0]["properties"]["id"] == SAMPLE_ID


class TestPermalink:
    def test_format(self):
        viewport = Viewport(Bounds(106.7, -6.3, 106.9, -6.1), zoom=12)
        link = permalink("http://map.test/", "http://localhost:3000", viewport)
        assert link == "http://map.test/?api=http%3A%2F%2Flocalhost%3A3000#-6.200000,106.800000,12"

    def test_fractional_zoom_kept(self):
        viewport = Viewport(Bounds(0, 0, 2, 2), zoom=12.5)
        assert permalink("p", "a", viewport).endswith("#1.000000,1.000000,12.5")

    def test_fragment_round_trip(self):
        assert parse_permalink_fragment("#-6.2,106.8,12") == (-6.2, 106.8, 12.0)

    @pytest.mark.parametrize("fragment", ["", "#1,2", "#a,b,c", "1,2,3,4"])
    def test_malformed_fragment(self, fragment):
        assert parse_permalink_fragment(fragment) is None

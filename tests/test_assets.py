import base64

from flutterdump.core.assets import embed_images, extract_asset_path


def test_extract_asset_path():
    assert extract_asset_path('AssetImage(name: "assets/logo.png")') == "assets/logo.png"
    assert extract_asset_path("AssetImage(name: 'assets/a b.png')") == "assets/a b.png"
    assert extract_asset_path("AssetImage(bundle: null, name: assets/x.png)") == "assets/x.png"
    assert extract_asset_path("assets/plain.png") == "assets/plain.png"


def test_embeds_nested_images_and_records_issues(tmp_path):
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "logo.png").write_bytes(b"\x89PNG data")
    (tmp_path / "assets" / "huge.png").write_bytes(b"x" * 64)

    logo = {"type": "Image", "properties": {"imagePath": 'AssetImage(name: "assets/logo.png")'}}
    huge = {"type": "Image", "properties": {"imagePath": '"assets/huge.png"'}}
    missing = {"type": "Image", "properties": {"imagePath": '"assets/missing.png"'}}
    tree = {
        "type": "Frame",
        "children": [logo, {"type": "Frame", "children": [huge, missing]}],
    }

    issues = embed_images(tree, tmp_path, max_bytes=32)

    assert logo["properties"]["imageBase64"] == base64.b64encode(b"\x89PNG data").decode()
    assert "imageBase64" not in huge["properties"]
    assert huge["properties"]["error"] == "Image too large (>0MB)"
    assert missing["properties"]["error"] == "Image file not found"
    assert [issue.image_path for issue in issues] == [
        '"assets/huge.png"',
        '"assets/missing.png"',
    ]
    assert issues[1].resolved_path == tmp_path / "assets" / "missing.png"


def test_default_limit_message(tmp_path):
    (tmp_path / "big.png").write_bytes(b"0" * (5 * 1024 * 1024 + 1))
    node = {"type": "Image", "properties": {"imagePath": '"big.png"'}}

    issues = embed_images(node, tmp_path)

    assert node["properties"]["error"] == "Image too large (>5MB)"
    assert len(issues) == 1


def test_ignores_non_image_nodes(tmp_path):
    tree = {
        "type": "Text",
        "properties": {"imagePath": '"assets/logo.png"'},
        "children": [{"type": "Image", "properties": {}}, "noise"],
    }

    assert embed_images(tree, tmp_path) == []
    assert "error" not in tree["properties"]

import os
import stat

import pytest

import bundler
from bundler import (
    add_asset_hosts_to_file,
    add_asset_mtimes_to_file,
    assemble_bundle,
    minify_all,
    minify_bundle,
    minify_file,
    write_atomic,
)
from conftest import write_file
from errors import AssetEncodingError, ConfigurationError, MinificationError

T1 = 1_600_000_000


def identity(text):
    return text


def table_minifier(table):
    """Return a minifier that maps known inputs to fixed outputs."""
    return lambda text: table[text]


def test_assemble_bundle_sizes_and_output(public_dir):
    a, b = "A" * 100, "B" * 50
    write_file(public_dir / "stylesheets" / "a.css", a)
    write_file(public_dir / "stylesheets" / "b.css", b)
    minifier = table_minifier({a: "a" * 60, b: "b" * 40})
    config = {"css": {"bundles": {"app": ["a", "b"]}}}

    output, old_size, new_size, members = assemble_bundle(
        "css", "app", config, public_dir=str(public_dir), minifiers={"css": minifier}
    )

    assert old_size == 150
    assert new_size == 100
    assert output == ("a" * 60 + "\n" + "b" * 40 + "\n").encode("utf-8")
    assert members == [
        os.path.join(str(public_dir), "stylesheets", "a.css"),
        os.path.join(str(public_dir), "stylesheets", "b.css"),
    ]


def test_minify_bundle_writes_min_file(public_dir):
    a, b = "A" * 100, "B" * 50
    write_file(public_dir / "stylesheets" / "a.css", a)
    write_file(public_dir / "stylesheets" / "b.css", b)
    minifier = table_minifier({a: "a" * 60, b: "b" * 40})
    config = {"css": {"bundles": {"app": ["a", "b"]}}}

    target, bundle = minify_bundle("css", "app", config, public_dir=str(public_dir), minifiers={"css": minifier})

    expected = public_dir / "stylesheets" / "bundles" / "app.min.css"
    assert target == str(expected)
    assert expected.read_text() == "a" * 60 + "\n" + "b" * 40 + "\n"
    assert bundle.percent_saved == pytest.approx(1 - 100 / 150)


def test_empty_bundle_is_configuration_error(public_dir):
    config = {"css": {"bundles": {"app": []}}}
    with pytest.raises(ConfigurationError):
        minify_bundle("css", "app", config, public_dir=str(public_dir), minifiers={"css": identity})
    assert not (public_dir / "stylesheets" / "bundles" / "app.min.css").exists()


def test_undefined_bundle_is_configuration_error(public_dir):
    with pytest.raises(ConfigurationError):
        assemble_bundle("js", "nope", {"js": {"bundles": {}}}, public_dir=str(public_dir), minifiers={"js": identity})


def test_empty_members_skip_percentage(public_dir, caplog):
    write_file(public_dir / "javascripts" / "blank.js", "")
    config = {"js": {"bundles": {"blank": ["blank"]}}}

    with caplog.at_level("INFO"):
        target, bundle = minify_bundle("js", "blank", config, public_dir=str(public_dir), minifiers={"js": identity})

    assert bundle.old_size == 0
    assert bundle.percent_saved is None
    with open(target) as f:
        assert f.read() == "\n"
    assert "MINIFIED" not in caplog.text


def test_preminified_js_members_are_not_minified_again(public_dir):
    write_file(public_dir / "javascripts" / "jquery.min.js", "var jq=1;")
    write_file(public_dir / "javascripts" / "app.js", "var  app = 1;")
    seen = []

    def tracking(text):
        seen.append(text)
        return text.replace("  ", " ")

    config = {"js": {"bundles": {"app": ["jquery.min", "app"]}}}
    output, _, _, _ = assemble_bundle("js", "app", config, public_dir=str(public_dir), minifiers={"js": tracking})

    assert seen == ["var  app = 1;"]
    assert output == b"var jq=1;\nvar app = 1;\n"


def test_css_members_get_mtimes_and_hosts(public_dir):
    image = write_file(public_dir / "images" / "bg.png", "png")
    os.utime(image, (T1, T1))
    write_file(public_dir / "stylesheets" / "site.css", "a{background:url(../images/bg.png)}")
    write_file(public_dir / "stylesheets" / "print.css", "b{background:url(/images/bg.png)}")
    config = {"css": {"bundles": {"site": ["site", "print"]}}}

    plain = assemble_bundle("css", "site", config, public_dir=str(public_dir), minifiers={"css": identity})
    assert plain.output.decode() == (
        f"a{{background:url(../images/bg.png?{T1})}}\n" f"b{{background:url(/images/bg.png?{T1})}}\n"
    )

    hosted = assemble_bundle(
        "css", "site", config, public_dir=str(public_dir), asset_host="http://cdn.example.com", minifiers={"css": identity}
    )
    assert f"url(http://cdn.example.com/images/bg.png?{T1})" in hosted.output.decode()


def test_minifier_failure_aborts_bundle(public_dir):
    write_file(public_dir / "stylesheets" / "a.css", "a{}")

    def broken(text):
        raise ValueError("bad input")

    config = {"css": {"bundles": {"app": ["a"]}}}
    with pytest.raises(MinificationError):
        minify_bundle("css", "app", config, public_dir=str(public_dir), minifiers={"css": broken})
    assert not (public_dir / "stylesheets" / "bundles").exists()


def test_minify_all_continues_after_failures(public_dir):
    write_file(public_dir / "stylesheets" / "a.css", "a { }")
    config = {"css": {"bundles": {"broken": [], "missing": ["nope"], "ok": ["a"]}}}

    results = minify_all("css", config, public_dir=str(public_dir), minifiers={"css": identity})

    assert [r.name for r in results] == ["broken", "missing", "ok"]
    assert [r.ok for r in results] == [False, False, True]
    assert "No CSS files" in results[0].error
    assert os.path.exists(results[2].path)
    assert not (public_dir / "stylesheets" / "bundles" / "broken.min.css").exists()


def test_minify_all_uses_configured_engines(public_dir):
    write_file(public_dir / "stylesheets" / "a.css", "a { color : red ; }")
    config = {"css": {"engine": "weak", "bundles": {"app": ["a"]}}}

    results = minify_all("css", config, public_dir=str(public_dir))

    assert results[0].ok
    assert (public_dir / "stylesheets" / "bundles" / "app.min.css").read_text() == "a{color:red}\n"


def test_minify_file(tmp_path):
    source = write_file(tmp_path / "app.js", "var  a = 1;")
    result = minify_file("js", str(source), minifiers={"js": lambda t: "var a=1;"})
    assert result.target == str(tmp_path / "app.min.js")
    assert (tmp_path / "app.min.js").read_text() == "var a=1;"
    assert result.old_size == 11
    assert result.new_size == 8


def test_minify_file_skips_minified(tmp_path):
    source = write_file(tmp_path / "app.min.js", "var a=1;")
    assert minify_file("js", str(source), minifiers={"js": identity}) is None


def test_add_asset_mtimes_to_file(tmp_path):
    image = write_file(tmp_path / "img" / "x.png", "png")
    os.utime(image, (T1, T1))
    css = write_file(tmp_path / "site.css", "a{background:url(img/x.png)}")
    add_asset_mtimes_to_file(str(css), public_dir=str(tmp_path))
    assert css.read_text() == f"a{{background:url(img/x.png?{T1})}}"


def test_add_asset_hosts_to_file(tmp_path):
    css = write_file(tmp_path / "site.css", "a{background:url(img/x.png)}")
    add_asset_hosts_to_file(str(css), "http://cdn.example.com")
    assert css.read_text() == "a{background:url(http://cdn.example.com/img/x.png)}"


def test_add_asset_hosts_to_file_requires_host(tmp_path):
    css = write_file(tmp_path / "site.css", "a{background:url(img/x.png)}")
    with pytest.raises(ConfigurationError, match="production"):
        add_asset_hosts_to_file(str(css), "", environment="production")
    assert css.read_text() == "a{background:url(img/x.png)}"


def test_write_atomic_leaves_no_temp_files(tmp_path):
    target = tmp_path / "out" / "nested" / "bundle.min.js"
    write_atomic(str(target), "x")
    write_atomic(str(target), b"y")
    assert target.read_bytes() == b"y"
    assert os.listdir(target.parent) == ["bundle.min.js"]


def test_write_atomic_cleans_up_on_failure(tmp_path, monkeypatch):
    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(bundler.os, "replace", fail_replace)
    with pytest.raises(OSError):
        write_atomic(str(tmp_path / "bundle.min.css"), "x")
    assert os.listdir(tmp_path) == []


def test_minify_all_uses_only_its_own_engine(public_dir):
    write_file(public_dir / "stylesheets" / "a.css", "a { color : red ; }")
    config = {"css": {"bundles": {"app": ["a"]}}, "js": {"engine": "packr", "bundles": {}}}

    results = minify_all("css", config, public_dir=str(public_dir))

    assert [r.ok for r in results] == [True]


def test_minify_all_continues_after_undecodable_member(public_dir):
    (public_dir / "stylesheets" / "latin1.css").write_bytes("a{content:'é'}".encode("latin-1"))
    write_file(public_dir / "stylesheets" / "ok.css", "b { }")
    config = {"css": {"bundles": {"bad": ["latin1"], "good": ["ok"]}}}

    results = minify_all("css", config, public_dir=str(public_dir), minifiers={"css": identity})

    assert [r.ok for r in results] == [False, True]
    assert "latin1.css is not valid UTF-8" in results[0].error
    assert not (public_dir / "stylesheets" / "bundles" / "bad.min.css").exists()


def test_read_asset_rejects_invalid_utf8(tmp_path):
    source = tmp_path / "legacy.js"
    source.write_bytes(b"var s = '\xff';")
    with pytest.raises(AssetEncodingError, match="legacy.js"):
        bundler.read_asset("js", str(source))


@pytest.mark.parametrize("filename", ["theme.scss", "notes.txt"])
def test_minify_file_refuses_to_overwrite_source(tmp_path, filename):
    source = write_file(tmp_path / filename, "a { color: red; }")
    with pytest.raises(ConfigurationError, match="refusing to overwrite"):
        minify_file("css", str(source), minifiers={"css": lambda t: "MINIFIED"})
    assert source.read_text() == "a { color: red; }"
    assert os.listdir(tmp_path) == [filename]


def test_write_atomic_new_file_uses_umask(tmp_path):
    old_umask = os.umask(0o022)
    try:
        target = tmp_path / "bundle.min.css"
        write_atomic(str(target), "x")
    finally:
        os.umask(old_umask)
    assert stat.S_IMODE(target.stat().st_mode) == 0o644


def test_write_atomic_keeps_existing_mode(tmp_path):
    css = write_file(tmp_path / "site.css", "a{background:url(img/x.png)}")
    os.chmod(css, 0o640)
    add_asset_hosts_to_file(str(css), "http://cdn.example.com")
    assert stat.S_IMODE(css.stat().st_mode) == 0o640
    assert "cdn.example.com" in css.read_text()

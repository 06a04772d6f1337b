import json
from pathlib import Path

import pytest

from buildserver.analysis import (
    ComponentBlocksExtractor,
    PermissionBlockExtractor,
    ScopeBlockExtractor,
    analyze_blocks,
    analyze_project_files,
    component_types_from_form,
    create_name_type_map,
    form_orientation,
    permissions_for_scopes,
)
from buildserver.analysis.permissions import permissions_for_scope

from conftest import form_source

RUNTIME = "com.google.appinventor.components.runtime"

BLOCKS = """<xml xmlns="http://www.w3.org/1999/xhtml">
  <block type="component_event" x="10" y="10">
    <mutation component_type="Button" instance_name="Button1" event_name="Click"></mutation>
    <statement name="DO">
      <block type="component_set_get">
        <mutation component_type="Label" set_or_get="set" property_name="Text" is_generic="false"></mutation>
        <next>
          <block type="helpers_dropdown">
            <mutation key="Permission"></mutation>
            <field name="OP">CAMERA</field>
          </block>
        </next>
      </block>
    </statement>
  </block>
  <block type="helpers_dropdown">
    <mutation key="FileScope"></mutation>
    <field name="OP">Shared</field>
  </block>
  <block type="component_method">
    <mutation component_type="Button" method_name="Hide"></mutation>
  </block>
</xml>
"""


def test_form_component_types_include_nested_components() -> None:
    src = (
        '#|\n$JSON\n'
        + json.dumps(
            {
                "Properties": {
                    "$Name": "Screen1",
                    "$Type": "Form",
                    "$Components": [
                        {"$Name": "Arr", "$Type": "HorizontalArrangement", "$Components": [{"$Type": "Button"}]},
                        {"$Name": "L", "$Type": "Label"},
                    ],
                }
            }
        )
        + "\n|#"
    )
    assert component_types_from_form(src) == {"Form", "HorizontalArrangement", "Button", "Label"}


def test_form_orientation_defaults_to_unspecified() -> None:
    assert form_orientation(form_source("Screen1")) == "unspecified"
    assert form_orientation(form_source("Screen1", orientation="landscape")) == "landscape"


def test_block_extractors_collect_usage_permissions_and_scopes() -> None:
    blocks, perms, scopes = ComponentBlocksExtractor(), PermissionBlockExtractor(), ScopeBlockExtractor()
    analyze_blocks(BLOCKS, [blocks, perms, scopes])

    assert blocks.get_result() == {"Button": {"Click", "Hide"}, "Label": {"Text"}}
    assert perms.get_result() == {"android.permission.CAMERA"}
    assert scopes.get_result() == {"Shared"}


def test_unparseable_block_file_is_skipped() -> None:
    perms = PermissionBlockExtractor()
    analyze_blocks("<xml><block", [perms])
    analyze_blocks("", [perms])
    assert perms.get_result() == set()


def test_scope_permission_table() -> None:
    shared = permissions_for_scope("Shared")
    assert {
        "android.permission.READ_MEDIA_AUDIO",
        "android.permission.READ_MEDIA_IMAGES",
        "android.permission.READ_MEDIA_VIDEO",
        "android.permission.READ_EXTERNAL_STORAGE",
        "android.permission.WRITE_EXTERNAL_STORAGE",
    } <= set(shared)
    assert {
        "android.permission.READ_EXTERNAL_STORAGE",
        "android.permission.WRITE_EXTERNAL_STORAGE",
    } <= set(permissions_for_scope("Legacy"))
    assert set(permissions_for_scope("App")) == set()
    assert permissions_for_scopes(["Bogus", "Legacy"]) == set(permissions_for_scope("Legacy"))


def _ext(assets: Path, dirname: str, filename: str, payload) -> None:
    d = assets / "external_comps" / dirname
    d.mkdir(parents=True)
    (d / filename).write_text(json.dumps(payload), encoding="utf-8")


def test_name_type_map_merges_catalog_and_extensions(tmp_path: Path) -> None:
    assets = tmp_path / "assets"
    _ext(assets, "com.example.single", "component.json", {"name": "Single", "type": "com.example.Single"})
    _ext(
        assets,
        "com.example.multi",
        "components.json",
        [{"name": "A", "type": "com.example.A"}, {"name": "B", "type": "com.example.B"}],
    )

    m = create_name_type_map(assets)

    assert m["Button"] == f"{RUNTIME}.Button"
    assert m["Single"] == "com.example.Single"
    assert m["A"] == "com.example.A"
    assert m["B"] == "com.example.B"


def test_name_type_map_prefers_single_descriptor(tmp_path: Path) -> None:
    assets = tmp_path / "assets"
    _ext(assets, "pkg", "component.json", {"name": "X", "type": "com.example.FromSingle"})
    (assets / "external_comps" / "pkg" / "components.json").write_text(
        json.dumps([{"name": "X", "type": "com.example.FromMulti"}]), encoding="utf-8"
    )
    assert create_name_type_map(assets)["X"] == "com.example.FromSingle"


def test_name_type_collisions_overwrite_in_directory_order(tmp_path: Path) -> None:
    assets = tmp_path / "assets"
    _ext(assets, "a_pkg", "component.json", {"name": "Button", "type": "com.example.FirstButton"})
    _ext(assets, "b_pkg", "component.json", {"name": "Button", "type": "com.example.SecondButton"})
    assert create_name_type_map(assets)["Button"] == "com.example.SecondButton"


def test_analyze_project_files_merges_all_results(tmp_path: Path) -> None:
    src = tmp_path / "src"
    src.mkdir()
    s1 = src / "Screen1.scm"
    s1.write_text(form_source("Screen1", ["Button", "NoSuchThing"], orientation="portrait"), encoding="utf-8")
    s2 = src / "Screen2.scm"
    s2.write_text(form_source("Screen2", ["Label"]), encoding="utf-8")
    b1 = src / "Screen1.bky"
    b1.write_text(BLOCKS, encoding="utf-8")

    analysis = analyze_project_files([s1, s2, b1], assets_dir=tmp_path / "assets")

    assert analysis.component_types == {f"{RUNTIME}.Form", f"{RUNTIME}.Button", f"{RUNTIME}.Label"}
    assert analysis.block_permissions == {"android.permission.CAMERA"}
    assert analysis.block_scopes == {"Shared"}
    assert analysis.form_orientations == {"Screen1": "portrait", "Screen2": "unspecified"}
    assert analysis.component_blocks["Button"] == {"Click", "Hide"}


def test_malformed_form_file_raises() -> None:
    with pytest.raises(ValueError):
        component_types_from_form("#|\n$JSON\nnot json\n|#")

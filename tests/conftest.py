from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Dict, Iterable, Optional

import pytest

FORM_TEMPLATE = '#|\n$JSON\n{}\n|#\n'


def form_source(name: str, components: Iterable[str] = (), *, orientation: Optional[str] = None) -> str:
    props: Dict[str, object] = {
        "$Name": name,
        "$Type": "Form",
        "$Components": [{"$Name": f"{c}1", "$Type": c} for c in components],
    }
    if orientation:
        props["ScreenOrientation"] = orientation
    return FORM_TEMPLATE.format(json.dumps({"authURL": [], "Properties": props}))


def make_project_zip(
    path: Path,
    *,
    name: Optional[str] = "Foo",
    components: Iterable[str] = ("Button",),
    extra: Optional[Dict[str, str]] = None,
    properties: Optional[str] = None,
) -> Path:
    """Write a minimal project archive: properties, one screen, its blocks and YAIL."""
    if properties is None:
        lines = [f"main=appinventor.ai_test.{name}.Screen1"]
        if name is not None:
            lines.append(f"name={name}")
        lines += ["assets=../assets", "source=../src", "versioncode=1", "versionname=1.0"]
        properties = "\n".join(lines) + "\n"

    src = f"src/appinventor/ai_test/{name or 'Foo'}"
    entries = {
        "youngandroidproject/project.properties": properties,
        f"{src}/Screen1.scm": form_source("Screen1", components),
        f"{src}/Screen1.bky": '<xml xmlns="http://www.w3.org/1999/xhtml"></xml>',
        f"{src}/Screen1.yail": "(do-after-form-creation)\n",
    }
    entries.update(extra or {})

    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for arcname, content in entries.items():
            zf.writestr(arcname, content)
    return path


@pytest.fixture
def project_zip(tmp_path: Path) -> Path:
    return make_project_zip(tmp_path / "in" / "Foo.aia")

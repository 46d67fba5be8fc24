import ast
from pathlib import Path

DEMO = Path(__file__).parent.parent / "demos" / "c14age_demo.py"


def cell_arguments_by_output():
    cells = {}
    for node in ast.parse(DEMO.read_text()).body:
        if not isinstance(node, ast.FunctionDef):
            continue
        args = {a.arg for a in node.args.args}
        for child in ast.walk(node):
            if isinstance(child, ast.Assign):
                for target in child.targets:
                    for name in ast.walk(target):
                        if isinstance(name, ast.Name):
                            cells.setdefault(name.id, set()).update(args)
    return cells


def test_clickable_map_survives_depth_changes():
    """Is the clickable map built once, independently of the depth slider?"""
    cells = cell_arguments_by_output()
    assert "depth_slider" not in cells["mainplot"]
    assert "mainplot" in cells["lon"]
    assert "depth_slider" in cells["lon"]

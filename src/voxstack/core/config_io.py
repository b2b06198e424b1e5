from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import InvalidParameterError
from .models import LoadConfig, OperationConfig, PipelineConfig


def _path_from_yaml(value: Any, base_dir: Path) -> Optional[Path]:
    """
    Convert a YAML path value (string or None) to a Path relative to base_dir.
    """
    if value is None:
        return None
    p = Path(str(value))
    if not p.is_absolute():
        p = base_dir / p
    return p


def _path_to_yaml(path: Optional[Path], base_dir: Path) -> Optional[str]:
    """
    Convert a Path to a relative string for YAML, relative to base_dir.
    """
    if path is None:
        return None
    try:
        rel = path.relative_to(base_dir)
    except ValueError:
        # If not under base_dir, fall back to normal relative path
        rel = path
    return str(rel)


def _operation_from_yaml(d: Dict[str, Any], base_dir: Path) -> OperationConfig:
    """
    Build one OperationConfig from its YAML mapping.

    The name is not checked here: an unknown operation is kept so that
    run_pipeline() can report and skip it while the others still run.
    """
    name = str(d.get("name", "")).strip().lower()
    return OperationConfig(
        name=name,
        subtype=str(d.get("subtype", "")),
        kernel_size=float(d.get("kernel_size", 3)),
        sigma=float(d.get("sigma", 2.0)),
        coordinate=int(d.get("coordinate", 0)),
        z_start=int(d.get("z_start", -1)),
        z_end=int(d.get("z_end", -1)),
        output=_path_from_yaml(d.get("output"), base_dir),
    )


def load_pipeline_config(path: Path) -> PipelineConfig:
    """
    Load a PipelineConfig from a YAML file.

    Paths inside the YAML are interpreted as relative to the YAML file
    location. Operation names are not validated; see run_pipeline().

    Raises
    ------
    InvalidParameterError
        The file is not a mapping, or a field has the wrong type.
    """
    path = Path(path)
    base_dir = path.parent

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidParameterError(f"{path}: expected a YAML mapping at top level")

    try:
        load_d: Dict[str, Any] = data.get("load", {}) or {}
        load_cfg = LoadConfig(
            first_slice=int(load_d.get("first_slice", 1)),
            last_slice=int(load_d.get("last_slice", -1)),
            extension=str(load_d.get("extension", "png")),
        )

        ops_yaml: List[Dict[str, Any]] = data.get("operations", []) or []
        operations = [_operation_from_yaml(d, base_dir) for d in ops_yaml]
    except (AttributeError, TypeError, ValueError) as e:
        raise InvalidParameterError(f"{path}: invalid pipeline config: {e}") from e

    return PipelineConfig(
        name=str(data.get("name", "voxstack pipeline")),
        input_path=_path_from_yaml(data.get("input_path"), base_dir),
        output_path=_path_from_yaml(data.get("output_path"), base_dir),
        load=load_cfg,
        operations=operations,
        config_path=path,
    )


def save_pipeline_config(cfg: PipelineConfig, path: Path) -> None:
    """
    Save a PipelineConfig to YAML.

    Paths are stored as strings relative to the YAML file location.
    """
    path = Path(path)
    base_dir = path.parent
    base_dir.mkdir(parents=True, exist_ok=True)

    ops_yaml: List[Dict[str, Any]] = []
    for op in cfg.operations:
        ops_yaml.append(
            {
                "name": op.name,
                "subtype": op.subtype,
                "kernel_size": op.kernel_size,
                "sigma": op.sigma,
                "coordinate": op.coordinate,
                "z_start": op.z_start,
                "z_end": op.z_end,
                "output": _path_to_yaml(op.output, base_dir),
            }
        )

    data: Dict[str, Any] = {
        "name": cfg.name,
        "input_path": _path_to_yaml(cfg.input_path, base_dir),
        "output_path": _path_to_yaml(cfg.output_path, base_dir),
        "load": {
            "first_slice": cfg.load.first_slice,
            "last_slice": cfg.load.last_slice,
            "extension": cfg.load.extension,
        },
        "operations": ops_yaml,
    }

    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(
            data,
            f,
            sort_keys=False,
            default_flow_style=False,
        )

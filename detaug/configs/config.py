"""YAML configuration for transform pipelines.

A pipeline config file holds a ``transform`` section plus the phase, seed
and device of the pipeline:

    phase: train
    seed: 42
    transform:
      crop_size: 224
      mirror: true
      mean_values: [104, 117, 123]

Files may inherit from others with ``_base_`` (a path or a list of paths,
relative to the including file); values from the including file win.

Example:
    >>> config = load_config("configs/ssd_train.yaml")
    >>> transform_config = build_transform_config(config)
"""

import copy
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import torch
import yaml

from detaug.data.transforms.params import TransformConfig
from detaug.errors import InvalidConfiguration

BASE_KEY = "_base_"


def _wrap(value: Any) -> Any:
    """Recursively turn mappings into ``ConfigDict``."""
    if isinstance(value, Mapping):
        return ConfigDict(value)
    if isinstance(value, (list, tuple)):
        return [_wrap(v) for v in value]
    return value


def _unwrap(value: Any) -> Any:
    """Recursively turn ``ConfigDict`` back into plain containers."""
    if isinstance(value, Mapping):
        return {k: _unwrap(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_unwrap(v) for v in value]
    return value


def _merge_into(target: Dict, source: Mapping) -> Dict:
    """Merge ``source`` over ``target`` in place; nested sections merge too."""
    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _merge_into(current, value)
        else:
            target[key] = copy.deepcopy(_unwrap(value))
    return target


class ConfigDict(dict):
    """Dictionary whose keys are also attributes.

    Example:
        >>> cfg = ConfigDict({"transform": {"crop_size": 224}})
        >>> cfg.transform.crop_size
        224
    """

    def __init__(self, data: Optional[Mapping] = None, **kwargs):
        super().__init__()
        for key, value in dict(data or {}, **kwargs).items():
            self[key] = _wrap(value)

    def __getattr__(self, name: str) -> Any:
        if name in self:
            return self[name]
        raise AttributeError(f"No config entry named '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = _wrap(value)

    def lookup(self, path: str, default: Any = None) -> Any:
        """Value at a dotted path such as ``"transform.crop_size"``."""
        node: Any = self
        for part in path.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return default
            node = node[part]
        return node

    def assign(self, path: str, value: Any) -> None:
        """Store ``value`` at a dotted path; missing sections are created."""
        *parents, leaf = path.split(".")
        node = self
        for part in parents:
            child = node.get(part)
            if not isinstance(child, ConfigDict):
                child = node[part] = ConfigDict()
            node = child
        node[leaf] = _wrap(value)


class Config:
    """Pipeline configuration.

    Sections are reachable as attributes, single values by dotted path.

    Args:
        cfg_dict: Initial values.

    Example:
        >>> config = Config.from_file("configs/train.yaml")
        >>> config.transform.crop_size
        224
        >>> config.set("transform.mirror", False)
    """

    def __init__(self, cfg_dict: Optional[Mapping] = None):
        object.__setattr__(self, "_cfg", ConfigDict(cfg_dict))

    @classmethod
    def from_file(cls, filepath: Union[str, Path]) -> "Config":
        """Read a YAML file and resolve its ``_base_`` chain.

        Raises:
            FileNotFoundError: If the file (or one of its bases) is missing.
            yaml.YAMLError: If a file is not valid YAML.
        """
        return cls(_read_yaml(Path(filepath)))

    def merge(self, other: "Config") -> "Config":
        """New config with ``other`` layered over this one."""
        return Config(_merge_into(self.to_dict(), other.to_dict()))

    def get(self, key: str, default: Any = None) -> Any:
        return self._cfg.lookup(key, default)

    def set(self, key: str, value: Any) -> None:
        self._cfg.assign(key, value)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._cfg, name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._cfg, name, value)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def to_dict(self) -> Dict:
        return _unwrap(self._cfg)

    def save(self, filepath: Union[str, Path]) -> None:
        """Write the configuration as YAML, creating parent directories."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.to_dict()})"


def _read_yaml(path: Path) -> Dict:
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    bases = data.pop(BASE_KEY, None) or []
    if isinstance(bases, str):
        bases = [bases]

    merged: Dict = {}
    for base in bases:
        _merge_into(merged, _read_yaml(path.parent / base))
    return _merge_into(merged, data)


def load_config(filepath: Union[str, Path]) -> Config:
    """Load a pipeline configuration from a YAML file."""
    return Config.from_file(filepath)


def get_default_config() -> Config:
    """Identity pipeline: train phase, unseeded, every transform off."""
    return Config(
        {
            "phase": "train",
            "seed": None,
            "device": None,
            "transform": {
                "crop_size": 0,
                "mirror": False,
                "mean_values": [],
                "mean_file": None,
                "scale": 1.0,
                "random_resize": {"lower": 0, "upper": 0},
                "random_crop_size": 0,
                "center_crop_size": 0,
                "distortion": {
                    "brightness_prob": 0.0,
                    "brightness": [1.0, 1.0],
                    "contrast_prob": 0.0,
                    "contrast": [1.0, 1.0],
                    "saturation_prob": 0.0,
                    "saturation": [1.0, 1.0],
                    "hue_prob": 0.0,
                    "hue": 0.0,
                },
                "expansion": {"prob": 0.0, "max_ratio": 1.0},
                "emit_constraint": None,
            },
        }
    )


def build_transform_config(config: Union[Config, Mapping]) -> TransformConfig:
    """Resolve the ``transform`` section into a validated ``TransformConfig``.

    ``config`` may also be the bare section as a plain mapping. A
    ``mean_file`` entry is loaded with ``torch.load`` and must hold a
    (C, H, W) tensor.

    Raises:
        InvalidConfiguration: If the section is missing or invalid.
    """
    if isinstance(config, Config):
        section = config.get("transform")
    else:
        section = config.get("transform", config)
    if section is None:
        raise InvalidConfiguration("Configuration has no 'transform' section")

    options = _unwrap(section)
    mean_file = options.pop("mean_file", None)
    if mean_file is not None:
        mean_path = Path(mean_file)
        if not mean_path.is_file():
            raise InvalidConfiguration(f"Mean file not found: {mean_path}")
        options["mean_image"] = torch.load(mean_path, map_location="cpu")

    return TransformConfig.from_dict(options)

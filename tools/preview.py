#!/usr/bin/env python3
"""Preview a transform pipeline on one image.

Decodes an image, runs the configured pipeline a number of times and
writes every result, mapped back to pixels, as a PNG file. Useful for
checking crop, mirror, distortion and expansion settings by eye.

Usage:
    Default (identity) pipeline:
        python tools/preview.py --image cat.jpg --output previews/

    From a config file with overrides:
        python tools/preview.py --config configs/train.yaml --image cat.jpg \\
            --output previews/ --num 8 --opts transform.crop_size=224 seed=7
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from detaug.configs import Config, get_default_config, load_config
from detaug.data import TransformPipeline, encode, sample_from_bytes

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("preview")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Preview detaug transforms on an image")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a pipeline YAML config (default: identity pipeline)",
    )
    parser.add_argument("--image", type=str, required=True, help="Input image file")
    parser.add_argument("--output", type=str, default="previews", help="Output directory")
    parser.add_argument("--num", type=int, default=4, help="Number of previews to write")
    parser.add_argument(
        "--opts",
        nargs="*",
        default=[],
        help="Config overrides as key=value pairs",
    )
    return parser.parse_args()


def parse_opts(opts: List[str]) -> Dict[str, Any]:
    """Parse ``key=value`` overrides, converting bools, None and numbers."""
    overrides = {}
    for opt in opts:
        if "=" not in opt:
            raise ValueError(f"Invalid option format: {opt}. Use key=value format.")
        key, value = opt.split("=", 1)

        if value.lower() == "true":
            value = True
        elif value.lower() == "false":
            value = False
        elif value.lower() == "none":
            value = None
        else:
            try:
                value = int(value)
            except ValueError:
                try:
                    value = float(value)
                except ValueError:
                    pass

        overrides[key] = value
    return overrides


def apply_overrides(config: Config, overrides: Dict[str, Any]) -> None:
    for key, value in overrides.items():
        config.set(key, value)
        logger.info(f"Override: {key} = {value}")


def main() -> None:
    args = parse_args()

    config = get_default_config()
    if args.config is not None:
        config = config.merge(load_config(args.config))
    apply_overrides(config, parse_opts(args.opts))

    pipeline = TransformPipeline.from_config(config)
    sample = sample_from_bytes(Path(args.image).read_bytes())
    shape = pipeline.infer_shape(sample)
    logger.info(f"Input {tuple(sample.image.shape)} -> output {tuple(shape)}")

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    stem = Path(args.image).stem
    for i in range(args.num):
        result = pipeline.transform(sample)
        pixels = pipeline.transform_inv(result.tensor)[0]
        path = output_dir / f"{stem}_{i:03d}.png"
        path.write_bytes(encode(pixels))
        logger.info(f"Wrote {path} (mirror={result.mirror}, crop_box={result.crop_box})")

    logger.info("Done!")


if __name__ == "__main__":
    main()

"""
Main application for Meter Capture.

Starts the camera on the default (rear) lens and serves the capture control
API. Also offers headless modes for listing cameras and taking one enhanced
snapshot.

Usage:
    python src/main.py --config config/config.yaml
    python src/main.py --list-devices
    python src/main.py --snapshot out.jpg --profile detailed

Arguments:
    --config: Path to configuration file
    --list-devices: Print the camera catalog and exit
    --snapshot: Capture one enhanced frame to a file and exit
    --profile: Override the enhancement profile (compact, standard, detailed)
"""

import os
import sys
import argparse
import asyncio
import json
import logging
import yaml
from typing import Dict, Any, Tuple, Optional

import uvicorn

from camera.selector import select_default
from models.config import Config, ENHANCEMENT_PROFILES, COLOR_MODES
from models.device import FacingMode
from ops.logging import setup_logging
from runtime.context import RuntimeContext, build_runtime
from web.app import create_app

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) not in (
            os.path.abspath(local_overrides_path),
            os.path.abspath(base_path),
        ):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_positive_int_pair(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and all(isinstance(x, int) and not isinstance(x, bool) and x > 0 for x in value)
    )


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'enhancement', 'vision', 'storage', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"
    try:
        FacingMode.parse(camera.get('preferred_facing', 'environment'))
    except ValueError:
        return False, "camera.preferred_facing must be one of: environment, user"
    if 'resolution' in camera and not _is_positive_int_pair(camera['resolution']):
        return False, "camera.resolution must be a list of [width, height] positive integers"
    if 'fps' in camera and (not isinstance(camera['fps'], int) or camera['fps'] <= 0):
        return False, "camera.fps must be a positive integer"
    if 'max_devices' in camera and (not isinstance(camera['max_devices'], int) or camera['max_devices'] <= 0):
        return False, "camera.max_devices must be a positive integer"
    if camera.get('labels') is not None and not isinstance(camera['labels'], dict):
        return False, "camera.labels must be a mapping of device id to label"

    # Enhancement
    enhancement = config.get('enhancement') or {}
    profile = enhancement.get('profile', 'standard')
    if profile not in ENHANCEMENT_PROFILES:
        return False, f"enhancement.profile must be one of: {', '.join(ENHANCEMENT_PROFILES)}"
    if 'target_width' in enhancement:
        tw = enhancement['target_width']
        if not isinstance(tw, int) or isinstance(tw, bool) or tw <= 0:
            return False, "enhancement.target_width must be a positive integer"
    if 'jpeg_quality' in enhancement:
        q = enhancement['jpeg_quality']
        if not _is_number(q) or not (0 < q <= 1):
            return False, "enhancement.jpeg_quality must be between 0 and 1"
    if 'color_mode' in enhancement and enhancement['color_mode'] not in COLOR_MODES:
        return False, f"enhancement.color_mode must be one of: {', '.join(COLOR_MODES)}"
    if 'clip_limit' in enhancement:
        if not _is_number(enhancement['clip_limit']) or enhancement['clip_limit'] <= 0:
            return False, "enhancement.clip_limit must be a positive number"
    if 'tile_grid' in enhancement and not _is_positive_int_pair(enhancement['tile_grid']):
        return False, "enhancement.tile_grid must be a list of two positive integers"
    if 'sharpen' in enhancement and not isinstance(enhancement['sharpen'], bool):
        return False, "enhancement.sharpen must be true or false"

    # Vision endpoint
    vision = config.get('vision') or {}
    if vision.get('enabled', True):
        endpoint = vision.get('endpoint')
        if not isinstance(endpoint, str) or not endpoint.startswith(("http://", "https://")):
            return False, "vision.endpoint must be an http(s) URL when vision is enabled"
    if 'timeout_s' in vision and (not _is_number(vision['timeout_s']) or vision['timeout_s'] <= 0):
        return False, "vision.timeout_s must be a positive number"

    # Storage
    storage = config.get('storage') or {}
    if 'local_database_path' not in storage:
        return False, "Missing storage.local_database_path"
    if not isinstance(storage['local_database_path'], str):
        return False, "storage.local_database_path must be a string"

    # Log settings
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


async def list_devices(ctx: RuntimeContext) -> int:
    devices = await ctx.catalog.list_video_devices()
    if not devices:
        print("No video input devices found")
        return 1
    default = select_default(devices)
    for device in devices:
        marker = "*" if default is not None and device.id == default.id else " "
        print(f"{marker} {device.id}\t{device.label or '(no label)'}\tgroup={device.group_id}")
    return 0


async def take_snapshot(ctx: RuntimeContext, output_path: str) -> int:
    """Start the default camera, capture once, write the enhanced JPEG."""
    controller = ctx.controller
    await controller.startup()
    if ctx.streams.active is None:
        logging.error(f"Camera unavailable: {controller.last_error}")
        return 1

    try:
        # first frames from some cameras are dark while exposure settles
        await asyncio.sleep(1.0)
        image = await controller.capture()
        with open(output_path, "wb") as f:
            f.write(image.encoded_bytes)
        logging.info(f"Enhanced snapshot written to {output_path} ({image.width}x{image.height})")

        if ctx.vision_client is not None:
            result = await controller.wait_for_extraction()
            if result is not None:
                print(json.dumps(result.to_dict(), indent=2))
            else:
                logging.error(f"Extraction failed: {controller.last_error}")
                return 2
        return 0
    finally:
        await controller.shutdown()


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Meter Capture - camera capture and enhancement service')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--list-devices', action='store_true',
                        help='Print the camera catalog and exit')
    parser.add_argument('--snapshot', type=str, default=None,
                        help='Capture one enhanced frame to this file and exit')
    parser.add_argument('--profile', type=str, default=None, choices=sorted(ENHANCEMENT_PROFILES),
                        help='Override the enhancement profile')
    args = parser.parse_args()

    raw_config = load_config(args.config)
    if args.profile:
        enhancement = raw_config.setdefault('enhancement', {})
        enhancement['profile'] = args.profile
        # profile defaults apply unless explicitly overridden on the command line
        enhancement.pop('target_width', None)
        enhancement.pop('jpeg_quality', None)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    config = Config.from_dict(raw_config)
    setup_logging(config.log_path, config.log_level)
    logging.info(
        f"Starting Meter Capture (profile={config.enhancement.profile}, "
        f"target_width={config.enhancement.target_width})"
    )

    ctx = build_runtime(config)
    try:
        if args.list_devices:
            sys.exit(asyncio.run(list_devices(ctx)))
        if args.snapshot:
            sys.exit(asyncio.run(take_snapshot(ctx, args.snapshot)))

        uvicorn.run(
            create_app(ctx.controller),
            host=config.web.host,
            port=config.web.port,
            log_level=config.log_level.lower(),
        )
    finally:
        ctx.close()


if __name__ == "__main__":
    main()

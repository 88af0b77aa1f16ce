"""
Audio device discovery through PortAudio (sounddevice).

sounddevice is imported lazily so the package still imports on machines
without a PortAudio library; discovery then reports no devices.
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def _load_sounddevice():
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        logger.warning(f"sounddevice unavailable: {e}")
        return None
    return sd


def get_default_input_device() -> Optional[str]:
    """
    Return the name of the default input device.

    Host APIs are tried in order; the first one that can be queried decides
    the answer, even if it has no default input device.
    """
    sd = _load_sounddevice()
    if sd is None:
        return None

    try:
        hostapis = sd.query_hostapis()
    except Exception as e:
        logger.error(f"Error querying host APIs: {e}")
        return None

    for hostapi in hostapis:
        index = hostapi.get("default_input_device", -1)
        try:
            if index is None or index < 0:
                return None
            return sd.query_devices(index)["name"]
        except Exception as e:
            logger.debug(f"Skipping host API {hostapi.get('name')}: {e}")
            continue

    return None


def list_audio_devices() -> List[Dict[str, Any]]:
    """List input and output devices with their default markers."""
    sd = _load_sounddevice()
    if sd is None:
        return []

    try:
        devices = sd.query_devices()
        default_input, default_output = sd.default.device
    except Exception as e:
        logger.error(f"Error getting audio devices: {e}")
        return []

    return [
        {
            "index": i,
            "name": device["name"],
            "input_channels": device["max_input_channels"],
            "output_channels": device["max_output_channels"],
            "sample_rate": device["default_samplerate"],
            "default_input": i == default_input,
            "default_output": i == default_output,
        }
        for i, device in enumerate(devices)
    ]


def print_audio_devices() -> None:
    """Print available devices for the --list-devices flag."""
    devices = list_audio_devices()
    print("\n📱 Available Audio Devices:")
    print("=" * 70)
    if not devices:
        print("  (none found)")
    for device in devices:
        markers = []
        if device["default_input"]:
            markers.append("DEFAULT INPUT")
        if device["default_output"]:
            markers.append("DEFAULT OUTPUT")
        suffix = f" ({', '.join(markers)})" if markers else ""
        print(f"  [{device['index']}] {device['name']}{suffix}")
        print(f"      In: {device['input_channels']}, Out: {device['output_channels']}, "
              f"Sample Rate: {int(device['sample_rate'])} Hz")
    print("=" * 70)

"""
cortexgrid - multi-headset selection grid for the Emotiv Cortex API.

Several people each wear a headset; each one moves a focus across a grid by
tilting their head and confirms a cell by holding the ``push`` mental
command. The package provides:

- One authenticated Cortex connection carrying a session per headset
  (`cortex.client`, `cortex.transport`)
- Routing of the multiplexed push frames to typed per-headset events
  (`cortex.demux`, `cortex.motion`, `cortex.metrics`)
- The hold-to-confirm and tilt navigation engine (`selection.engine`)
- A pipeline wiring everything to publishers (`core.pipeline`)
- The ``cortexgrid`` command (`cli.main`)
"""

from .core.config import Config
from .core.pipeline import HeadsetPipeline
from .cortex.client import MultiHeadsetClient
from .selection.engine import SelectionEngine

__all__ = ["Config", "HeadsetPipeline", "MultiHeadsetClient", "SelectionEngine"]
__version__ = "0.1.0"

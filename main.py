#!/usr/bin/env python3
"""chip8-vm Command Line Interface.

Run CHIP-8 ROMs with the chip8-vm engine.

Usage:
    python main.py --rom roms/ibm_logo.ch8 --frames 60 --view
    python main.py --rom roms/ibm_logo.ch8 --disassemble
    python main.py --repl
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from chip8_vm.cli import main


if __name__ == "__main__":
    sys.exit(main())

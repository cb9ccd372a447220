"""chip8-vm Command Line Interface.

Run CHIP-8 ROMs headless, disassemble them, or open the debugger.

Usage:
    chip8-vm --rom roms/ibm_logo.ch8 --frames 60 --view
    chip8-vm --rom roms/test_opcode.ch8 --cycles 500 --trace
    chip8-vm --rom roms/pong.ch8 --disassemble
    chip8-vm --repl
"""

import argparse
import logging
import sys
from typing import List, Optional

from .driver import DEFAULT_CYCLES_PER_FRAME, FrameDriver
from .errors import DecodeError, ROMLoadError
from .keys import keystate_from_names
from .loader import check_rom, disassemble, load_bytes, load_rom
from .repl import Debugger


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chip8-vm",
        description="chip8-vm: CHIP-8 virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run one second of emulated time and print the screen
    chip8-vm --rom roms/ibm_logo.ch8 --frames 60 --view

    # Run 200 instructions with a full execution trace
    chip8-vm --rom roms/ibm_logo.ch8 --cycles 200 --trace

    # Hold keys W and Q (keypad 5 and 4) while running
    chip8-vm --rom roms/pong.ch8 --frames 120 --key w --key q

    # Print a disassembly listing
    chip8-vm --rom roms/ibm_logo.ch8 --disassemble
        """
    )

    parser.add_argument(
        "--rom", "-r",
        type=str,
        help="Path to a CHIP-8 ROM file"
    )
    parser.add_argument(
        "--cycles", "-c",
        type=int,
        help="Execute exactly this many instructions (timers are not ticked)"
    )
    parser.add_argument(
        "--frames", "-f",
        type=int,
        default=60,
        help="Frames to run at 60 Hz timer cadence. Default: 60"
    )
    parser.add_argument(
        "--cycles-per-frame",
        type=int,
        default=DEFAULT_CYCLES_PER_FRAME,
        help=f"Instructions per frame. Default: {DEFAULT_CYCLES_PER_FRAME}"
    )
    parser.add_argument(
        "--key", "-k",
        action="append",
        default=[],
        help="Hold a keyboard key (1234 QWER ASDF ZXCV layout); repeatable"
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Pace frames to 60 Hz wall-clock time"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the random number instruction"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--view",
        action="store_true",
        help="Print the framebuffer after running"
    )
    parser.add_argument(
        "--disassemble", "-d",
        action="store_true",
        help="Print a disassembly listing instead of running"
    )
    parser.add_argument(
        "--repl",
        action="store_true",
        help="Start the interactive debugger (loads --rom if given)"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (non-zero registers only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.rom and not args.repl:
        parser.error("Either --rom or --repl is required")

    try:
        keys = keystate_from_names(args.key)
    except KeyError as e:
        parser.error(str(e))

    if args.disassemble:
        if not args.rom:
            parser.error("--disassemble requires --rom")
        try:
            rom = load_bytes(args.rom)
            check_rom(rom)
        except ROMLoadError as e:
            print(f"Error: {e}")
            return 1
        for line in disassemble(rom):
            print(line)
        return 0

    try:
        cpu = load_rom(args.rom, seed=args.seed, trace=args.trace) if args.rom else None
    except ROMLoadError as e:
        print(f"Error: {e}")
        return 1

    if args.repl:
        Debugger(cpu).loop()
        return 0

    if not args.quiet:
        print(f"Loading ROM: {args.rom}")
        print("-" * 60)
        print("Executing...")
        print("-" * 60)

    status = 0
    try:
        if args.cycles is not None:
            cpu.run(args.cycles, keys)
        else:
            driver = FrameDriver(cpu, args.cycles_per_frame, realtime=args.realtime)
            driver.run(args.frames, lambda: keys)
    except DecodeError as e:
        print(f"Execution error at {cpu.program_counter():#05x}: {e}")
        status = 1

    if args.trace:
        cpu.print_trace()
    elif not args.quiet:
        print()
        summary = cpu.get_summary()
        print(f"Cycles: {summary['cycles']}")
        print(f"PC: {summary['pc']:#05x}  I: {summary['index']:#05x}")
        print(f"Registers: {summary['registers']}")
        print(f"Timers: DT={summary['delay']} ST={summary['sound']}")
        print(f"Lit pixels: {summary['lit_pixels']}")
    else:
        for reg, value in cpu.dump_registers().items():
            if value != 0:
                print(f"{reg}={value}")

    if args.view:
        print(cpu.view())

    return status


if __name__ == "__main__":
    sys.exit(main())

"""Line-oriented debugger for the CHIP-8 engine.

Commands (any listed abbreviation works):
    load|loa|lo|l <path>         load a ROM into a fresh CPU
    run|ru|r                     run until a breakpoint or an error
    step|ste|st|s [n]            execute n (hex) instructions, default 1
    debug|debu|deb|de|d          print registers, I, PC, timers and stack
    execute|...|ex|e <word>      decode and execute one raw word (hex)
    view|vie|vi|v                print the framebuffer
    breakpoint|...|br|b <addr>   toggle a breakpoint at a PC value (hex)
    memory|...|me|m <addr> [n]   dump n (hex, default 0x10) bytes from addr
    quit|qui|qu|q|exit           leave the debugger

The debugger owns breakpoints and command parsing; it only touches the CPU
through step/decode/execute and read access to its state.
"""

import logging
import re
import sys
from enum import Enum, auto
from typing import Callable, Optional, Set, TextIO, Tuple

from .cpu import Chip8CPU
from .errors import CommandParseError, DecodeError, OpcodeParseError, ROMLoadError
from .loader import load_rom


logger = logging.getLogger(__name__)

DEFAULT_RUN_LIMIT = 1_000_000


class Command(Enum):
    LOAD = auto()
    RUN = auto()
    STEP = auto()
    QUIT = auto()
    DEBUG = auto()
    EXECUTE = auto()
    VIEW = auto()
    BREAKPOINT = auto()
    MEMORY = auto()


COMMAND_WORDS = {
    Command.LOAD: ("l", "lo", "loa", "load"),
    Command.RUN: ("r", "ru", "run"),
    Command.STEP: ("s", "st", "ste", "step"),
    Command.DEBUG: ("d", "de", "deb", "debu", "debug"),
    Command.QUIT: ("q", "qu", "qui", "quit", "exit"),
    Command.EXECUTE: ("e", "ex", "exe", "exec", "execu", "execut", "execute"),
    Command.VIEW: ("v", "vi", "vie", "view"),
    Command.BREAKPOINT: ("b", "br", "bre", "brea", "break", "breakpoint"),
    Command.MEMORY: ("m", "me", "mem", "memo", "memor", "memory"),
}

_WORD_TO_COMMAND = {word: command for command, words in COMMAND_WORDS.items() for word in words}

_COMMAND_RE = re.compile(r"(\w+)(.*)")
_HEX_RE = re.compile(r"(0x)?([0-9A-Fa-f]{1,6})")


def parse_command(line: str) -> Tuple[Command, str]:
    """Split a line into its command and the rest of the line.

    Returns:
        (Command, rest) where rest keeps its leading whitespace

    Raises:
        CommandParseError: If the first word is not a known command
    """
    match = _COMMAND_RE.search(line)
    if match is None:
        raise CommandParseError(line.strip())
    word = match.group(1)
    if word not in _WORD_TO_COMMAND:
        raise CommandParseError(word)
    return _WORD_TO_COMMAND[word], match.group(2)


def parse_hex(text: str) -> int:
    """Parse the first hex number in text (an 0x prefix is optional).

    Raises:
        OpcodeParseError: If no hex number is present or it exceeds 16 bits
    """
    match = _HEX_RE.search(text)
    if match is None:
        raise OpcodeParseError(text.strip())
    value = int(match.group(2), 16)
    if value > 0xFFFF:
        raise OpcodeParseError(match.group(0))
    return value


class Debugger:
    """Interactive debugger state.

    Attributes:
        cpu: CPU being debugged (replaced wholesale on load)
        breakpoints: PC values that stop a run
        out: Output stream
        run_limit: Maximum instructions per run command
    """

    def __init__(self, cpu: Optional[Chip8CPU] = None, out: Optional[TextIO] = None,
                 run_limit: int = DEFAULT_RUN_LIMIT):
        self.cpu = cpu if cpu is not None else Chip8CPU()
        self.breakpoints: Set[int] = set()
        self.out = out if out is not None else sys.stdout
        self.run_limit = run_limit
        self._handlers: dict = {
            Command.LOAD: self._load,
            Command.RUN: self._run,
            Command.STEP: self._step,
            Command.DEBUG: self._debug,
            Command.EXECUTE: self._execute,
            Command.VIEW: self._view,
            Command.BREAKPOINT: self._breakpoint,
            Command.MEMORY: self._memory,
        }

    def _print(self, text: str = "") -> None:
        print(text, file=self.out)

    def _halt(self, error: Exception) -> None:
        # stack misuse is fatal to the program, not to the session
        logger.debug("Program halted: %s", error)
        self._print(self.cpu.view())
        self._print(f"Fatal: {error}")

    def handle(self, line: str) -> bool:
        """Process one command line.

        Returns:
            False if the debugger should exit, True otherwise
        """
        try:
            command, rest = parse_command(line)
        except CommandParseError as e:
            self._print(f"Could not parse command: {line.strip()}")
            logger.debug("%s", e)
            return True

        if command is Command.QUIT:
            return False

        try:
            self._handlers[command](rest)
        except OpcodeParseError as e:
            self._print(f"Could not parse argument: {rest.strip()} ({e})")
        return True

    def loop(self, read_line: Optional[Callable[[str], str]] = None) -> None:
        """Read and handle commands until quit or end of input.

        Args:
            read_line: Prompting line reader (builtin input() if None)
        """
        if read_line is None:
            read_line = input
        while True:
            try:
                line = read_line("Enter a command: ")
            except EOFError:
                break
            if not self.handle(line):
                break

    # =========================================================================
    # Commands
    # =========================================================================

    def _load(self, rest: str) -> None:
        filename = rest.strip()
        try:
            self.cpu = load_rom(filename)
        except ROMLoadError as e:
            self._print(f"Could not load program: {filename}")
            self._print(str(e))
            return
        self._print(f"Loaded {filename}")

    def _run(self, rest: str) -> None:
        for executed in range(self.run_limit):
            pc = self.cpu.program_counter()
            # the first instruction always runs so a run can leave a breakpoint
            if executed and pc in self.breakpoints:
                self._print(f"Breakpoint hit at: {pc:#X}")
                return
            try:
                self.cpu.step()
            except DecodeError as e:
                self._print(self.cpu.view())
                self._print(f"Error: {e}")
                return
            except RuntimeError as e:
                self._halt(e)
                return
        self._print(f"Stopped after {self.run_limit} instructions at {self.cpu.program_counter():#X}")

    def _step(self, rest: str) -> None:
        steps = parse_hex(rest) if rest.strip() else 1
        for _ in range(steps):
            try:
                opcode = self.cpu.step()
            except DecodeError as e:
                self._print(f"Error: {e}")
                self._print(self.cpu.view())
                return
            except RuntimeError as e:
                self._halt(e)
                return
            logger.debug("Stepped %s", opcode)
        self._print(f"PC: {self.cpu.program_counter():#X}")

    def _debug(self, rest: str) -> None:
        self._print("Debugging")
        for i, value in enumerate(self.cpu.registers):
            self._print(f"V{i:X}: {value}")
        self._print(f"I: {self.cpu.index:#X}")
        self._print(f"PC: {self.cpu.program_counter():#X}")
        self._print(f"DT: {self.cpu.delay}  ST: {self.cpu.sound}")
        stack = ", ".join(f"{addr:#X}" for addr in self.cpu.stack)
        self._print(f"Stack: [{stack}]")

    def _execute(self, rest: str) -> None:
        word = parse_hex(rest)
        instr = (word >> 8, word & 0xFF)
        self._print(f"Executing: {word:04X}")
        result = self.cpu.try_decode(instr)
        if not result.valid:
            self._print(f"Error: {DecodeError(instr, result.error)}")
            return
        try:
            self.cpu.execute(result.opcode)
        except RuntimeError as e:
            self._halt(e)
            return
        self._print(str(result.opcode))

    def _view(self, rest: str) -> None:
        self._print(self.cpu.view())

    def _breakpoint(self, rest: str) -> None:
        addr = parse_hex(rest)
        if addr in self.breakpoints:
            self.breakpoints.remove(addr)
            self._print(f"Removing breakpoint when the pc is {addr:#X}")
        else:
            self.breakpoints.add(addr)
            self._print(f"Adding breakpoint when the pc is {addr:#X}")

    def _memory(self, rest: str) -> None:
        args = rest.split()
        if not args:
            raise OpcodeParseError(rest)
        start = parse_hex(args[0])
        length = parse_hex(args[1]) if len(args) > 1 else 0x10
        try:
            data = self.cpu.memory.dump(start, length)
        except IndexError as e:
            self._print(f"Error: {e}")
            return
        for offset in range(0, len(data), 16):
            chunk = data[offset:offset + 16]
            self._print(f"{start + offset:03X}: " + " ".join(f"{b:02X}" for b in chunk))


def main() -> int:
    """Run the interactive debugger on stdin/stdout."""
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    Debugger().loop()
    return 0


if __name__ == "__main__":
    sys.exit(main())

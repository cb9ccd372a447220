"""Logical hex keypad state.

The core only sees a 16-element boolean vector indexed by logical key
(0x0-0xF). Mapping physical input onto it is the presentation layer's job;
KEYBOARD_MAP gives the conventional layout for keyboard front ends:

    1 2 3 C        1 2 3 4
    4 5 6 D   <-   Q W E R
    7 8 9 E        A S D F
    A 0 B F        Z X C V
"""

from typing import Iterable, List, Tuple


NUM_KEYS = 16

KeyState = Tuple[bool, ...]

NO_KEYS: KeyState = (False,) * NUM_KEYS

KEYBOARD_MAP = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}


def make_keystate(pressed: Iterable[int]) -> KeyState:
    """Build a key state with the given logical keys held down.

    Raises:
        ValueError: If a key is outside 0x0-0xF
    """
    state = [False] * NUM_KEYS
    for key in pressed:
        if not 0 <= key < NUM_KEYS:
            raise ValueError(f"Invalid key: {key}")
        state[key] = True
    return tuple(state)


def pressed_keys(keys: KeyState) -> List[int]:
    """List the pressed logical keys in ascending order."""
    return [key for key, down in enumerate(keys) if down]


def keystate_from_names(names: Iterable[str]) -> KeyState:
    """Build a key state from physical key names (case insensitive).

    Raises:
        KeyError: If a name has no mapping
    """
    pressed = []
    for name in names:
        lowered = name.lower()
        if lowered not in KEYBOARD_MAP:
            raise KeyError(f"Unmapped key: {name}")
        pressed.append(KEYBOARD_MAP[lowered])
    return make_keystate(pressed)

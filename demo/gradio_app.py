"""chip8-vm Interactive Demo.

A Gradio web interface for running CHIP-8 ROMs and inspecting the machine.

Usage:
    cd /path/to/chip8-vm
    python demo/gradio_app.py

Features:
    - Upload a ROM or start from a built-in example
    - Hold keypad keys while advancing a number of frames
    - See the scaled framebuffer, registers and the recent trace
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from chip8_vm import Chip8CPU, DecodeError, ROMLoadError, make_keystate
from chip8_vm.driver import DEFAULT_CYCLES_PER_FRAME, FrameDriver
from chip8_vm.loader import check_rom, load_bytes
from chip8_vm.render import framebuffer_to_image


# =============================================================================
# Example ROMs
# =============================================================================

EXAMPLE_ROMS = {
    # Draws the font glyphs 0-7 across the top of the screen, then spins
    "Hex digits": bytes([
        0x60, 0x00,  # LD V0, 0x00      digit
        0x61, 0x01,  # LD V1, 0x01      x
        0x62, 0x01,  # LD V2, 0x01      y
        0xF0, 0x29,  # LD F, V0
        0xD1, 0x25,  # DRW V1, V2, 5
        0x70, 0x01,  # ADD V0, 0x01
        0x71, 0x06,  # ADD V1, 0x06
        0x30, 0x08,  # SE V0, 0x08
        0x12, 0x06,  # JP 0x206
        0x12, 0x12,  # JP 0x212
    ]),
    # Shows the last key pressed as a digit in the middle of the screen
    "Key echo": bytes([
        0xF0, 0x0A,  # LD V0, K
        0x00, 0xE0,  # CLS
        0xF0, 0x29,  # LD F, V0
        0x61, 0x1C,  # LD V1, 0x1c
        0x62, 0x0D,  # LD V2, 0x0d
        0xD1, 0x25,  # DRW V1, V2, 5
        0x12, 0x00,  # JP 0x200
    ]),
}

KEY_LABELS = [f"{key:X}" for key in range(16)]


# =============================================================================
# Execution Functions
# =============================================================================

def new_cpu(rom: bytes, seed: int) -> Chip8CPU:
    cpu = Chip8CPU(seed=seed, trace=True, max_trace=200)
    cpu.load_program(rom)
    return cpu


def format_registers(cpu: Chip8CPU) -> str:
    summary = cpu.get_summary()
    lines = [
        "REGISTERS",
        "=" * 30,
    ]
    for reg, value in summary["registers"].items():
        marker = " *" if value != 0 else ""
        lines.append(f"  {reg}: {value:#04x} ({value:>3}){marker}")
    lines.append("")
    lines.append(f"  I:  {summary['index']:#05x}")
    lines.append(f"  PC: {summary['pc']:#05x}")
    lines.append(f"  DT: {summary['delay']}  ST: {summary['sound']}")
    lines.append(f"  Stack depth: {summary['stack_depth']}")
    lines.append(f"  Cycles: {summary['cycles']}")
    return "\n".join(lines)


def format_trace(cpu: Chip8CPU, limit: int = 40) -> str:
    lines = ["RECENT TRACE", "=" * 60]
    for entry in list(cpu.trace)[-limit:]:
        hi, lo = entry.instruction
        text = str(entry.opcode) if entry.opcode is not None else f"ERROR: {entry.error}"
        lines.append(f"{entry.cycle:>8}  {entry.address:03X}: {hi:02X}{lo:02X}  {text}")
    return "\n".join(lines)


def load_program(rom_file, example_name: str, seed: int):
    """Create a fresh CPU from the uploaded ROM or the chosen example."""
    try:
        if rom_file is not None:
            path = rom_file if isinstance(rom_file, str) else rom_file.name
            rom = load_bytes(path)
            name = Path(path).name
        else:
            rom = EXAMPLE_ROMS[example_name]
            name = example_name
        check_rom(rom)
    except ROMLoadError as e:
        return None, None, f"Error: {e}", ""

    cpu = new_cpu(rom, int(seed))
    status = f"Loaded {name} ({len(rom)} bytes)\n\n" + format_registers(cpu)
    return cpu, framebuffer_to_image(cpu.framebuffer), status, format_trace(cpu)


def run_frames(cpu, held_keys, frames: int, cycles_per_frame: int):
    """Advance the loaded CPU by a number of frames."""
    if cpu is None:
        return None, None, "Error: No ROM loaded", ""

    keys = make_keystate(int(label, 16) for label in held_keys or [])
    driver = FrameDriver(cpu, int(cycles_per_frame))
    error = ""
    try:
        driver.run(int(frames), lambda: keys)
    except DecodeError as e:
        error = f"Halted: {e}\n\n"

    image = framebuffer_to_image(cpu.framebuffer)
    return cpu, image, error + format_registers(cpu), format_trace(cpu)


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="chip8-vm Demo") as demo:
        gr.Markdown("""
        # chip8-vm: CHIP-8 Virtual Machine

        Load a ROM, hold keypad keys and advance the machine frame by frame.
        Each frame runs a fixed number of instructions and one 60 Hz timer tick.
        """)

        cpu_state = gr.State(None)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")
                rom_input = gr.File(label="ROM file", type="filepath")
                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_ROMS.keys()),
                    value="Hex digits",
                    label="Example (used when no file is uploaded)"
                )
                seed_input = gr.Number(value=0, precision=0, label="Random seed")
                load_button = gr.Button("Load", variant="secondary")

                gr.Markdown("### Run")
                keypad = gr.CheckboxGroup(choices=KEY_LABELS, label="Held keys")
                with gr.Row():
                    frames_slider = gr.Slider(
                        minimum=1, maximum=600, value=60, step=1, label="Frames"
                    )
                    cycles_slider = gr.Slider(
                        minimum=1, maximum=100, value=DEFAULT_CYCLES_PER_FRAME,
                        step=1, label="Instructions per frame"
                    )
                run_button = gr.Button("Run Frames", variant="primary")

            with gr.Column(scale=3):
                screen = gr.Image(label="Display", interactive=False)
                with gr.Row():
                    status_output = gr.Textbox(label="Machine State", lines=24, interactive=False)
                    trace_output = gr.Textbox(label="Trace", lines=24, interactive=False)

        load_button.click(
            fn=load_program,
            inputs=[rom_input, example_dropdown, seed_input],
            outputs=[cpu_state, screen, status_output, trace_output]
        )

        run_button.click(
            fn=run_frames,
            inputs=[cpu_state, keypad, frames_slider, cycles_slider],
            outputs=[cpu_state, screen, status_output, trace_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )

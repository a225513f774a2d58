"""LC-3 VM Interactive Demo.

A Gradio web interface for running and visualizing LC-3 execution.

Usage:
    cd /path/to/lc3-vm
    python demo/gradio_app.py

Features:
    - Paste an image as hex words or upload an .obj file
    - Supply keyboard input up front (replayed to GETC/IN/KBDR)
    - See the disassembled step-by-step execution trace
    - Inspect final registers and condition codes
"""

import io
import re
import sys
from pathlib import Path
from typing import List

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from lc3_vm import LC3, ScriptedInput, load_image
from lc3_vm.loader import Image


# =============================================================================
# Example Programs (first word is the origin)
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Hello (PUTS)": """x3000
xE002   ; LEA R0, x3003
xF022   ; PUTS
xF025   ; HALT
x0048   ; 'H'
x0069   ; 'i'
x0021   ; '!'
x0000""",

    "Sum 1-10": """x3000
x5020   ; AND R0, R0, #0
x5260   ; AND R1, R1, #0
x126A   ; ADD R1, R1, #10
x1001   ; ADD R0, R0, R1
x127F   ; ADD R1, R1, #-1
x03FD   ; BRp x3003
xF025   ; HALT       R0 = 55""",

    "Echo (GETC/OUT)": """x3000
xF020   ; GETC
xF021   ; OUT
x0FFD   ; BRnzp x3000""",

    "Packed string (PUTSP)": """x3000
xE002   ; LEA R0, x3003
xF024   ; PUTSP
xF025   ; HALT
x6548   ; 'H' 'e'
x6C6C   ; 'l' 'l'
x006F   ; 'o'
x0000""",

    "Custom": ""
}

_WORD = re.compile(r"^(?:x|0x)?([0-9a-fA-F]{1,4})$")


def parse_hex_words(text: str) -> List[int]:
    """Parse one or more hex words per line; ';' starts a comment."""
    words = []
    for line in text.splitlines():
        line = line.split(";", 1)[0]
        for token in line.replace(",", " ").split():
            match = _WORD.match(token)
            if not match:
                raise ValueError(f"Not a hex word: {token!r}")
            words.append(int(match.group(1), 16))
    return words


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(program: str, upload, keyboard: str, max_cycles: int) -> tuple:
    """Execute an image and return results.

    Args:
        program: Hex words, origin first
        upload: Optional uploaded .obj file (takes precedence)
        keyboard: Characters fed to the keyboard; a Ctrl-C byte is appended
        max_cycles: Maximum instructions to execute

    Returns:
        Tuple of (summary_text, output_text, trace_text, registers_text)
    """
    try:
        if upload is not None:
            image = load_image(Path(upload).read_bytes())
        else:
            words = parse_hex_words(program)
            if not words:
                return "Error: No program provided", "", "", ""
            image = Image(origin=words[0], words=words[1:])

        output = io.StringIO()
        machine = LC3(
            input_source=ScriptedInput(keyboard + "\x03"),
            output=output,
            trace_stream=io.StringIO(),
            max_cycles=int(max_cycles),
            record_trace=True,
        )
        machine.load_image(image)
        machine.run()

        summary = machine.get_summary()
        summary_lines = [
            "EXECUTION SUMMARY",
            "=" * 40,
            f"Origin: x{image.origin:04X} ({len(image)} words)",
            f"Cycles: {summary['cycles']}",
            f"Stopped: {summary['reason']}",
            f"Exit code: {summary['exit_code']}",
        ]
        if summary['message']:
            summary_lines.append(f"Message: {summary['message']}")
        summary_text = "\n".join(summary_lines)

        # Format trace
        trace_text = io.StringIO()
        if len(machine.trace) > 200:
            machine.trace = machine.trace[:200]
            trace_text.write(f"(showing first 200 of {summary['trace_length']} entries)\n")
        machine.print_trace(file=trace_text)

        regs = machine.dump_registers()
        reg_lines = [
            "FINAL REGISTERS",
            "=" * 30,
        ]
        for reg, value in regs.items():
            marker = " *" if value != 0 else ""
            reg_lines.append(f"  {reg}: x{value:04X} {value:>6}{marker}")
        reg_lines.append("")
        reg_lines.append(f"  PC:  x{summary['pc']:04X}")
        reg_lines.append(f"  PSR: x{summary['psr']:04X}  CC={summary['condition_codes']}")
        registers_text = "\n".join(reg_lines)

        return summary_text, output.getvalue(), trace_text.getvalue(), registers_text

    except Exception as e:
        return f"Error: {str(e)}", "", "", ""


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="LC-3 VM Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # LC-3 VM

        A virtual machine for the 16-bit LC-3: eight registers, 64K words of
        memory, N/Z/P condition codes and TRAP-based character I/O.

        **Pipeline**: `fetch -> decode -> registry -> execute -> state`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Object Image")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Hello (PUTS)",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Hello (PUTS)"],
                    label="Hex Words (origin first, ';' comments)",
                    lines=15,
                    placeholder="x3000\nxF025"
                )

                upload_input = gr.File(
                    label="Or upload an .obj file",
                    type="filepath"
                )

                gr.Markdown("### Settings")

                keyboard_input = gr.Textbox(
                    value="",
                    label="Keyboard Input",
                    info="Replayed to GETC / IN / KBDR; Ctrl-C is appended to stop"
                )
                max_cycles = gr.Slider(
                    minimum=100,
                    maximum=100000,
                    value=10000,
                    step=100,
                    label="Max Cycles"
                )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=8,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=8,
                        interactive=False
                    )

                program_output = gr.Textbox(
                    label="Console Output",
                    lines=6,
                    interactive=False
                )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Opcode | Bits | Description |
            |--------|------|-------------|
            | `BR`   | 0000 | Branch on n/z/p |
            | `ADD`  | 0001 | Add register or imm5 |
            | `LD`   | 0010 | Load PC-relative |
            | `ST`   | 0011 | Store PC-relative |
            | `JSR`  | 0100 | Subroutine call (JSRR via register) |
            | `AND`  | 0101 | And register or imm5 |
            | `LDR`  | 0110 | Load base+offset6 |
            | `STR`  | 0111 | Store base+offset6 |
            | `RTI`  | 1000 | Not supported (stops the machine) |
            | `NOT`  | 1001 | Bitwise complement |
            | `LDI`  | 1010 | Load indirect |
            | `STI`  | 1011 | Store indirect |
            | `JMP`  | 1100 | Jump to register (`RET` = `JMP R7`) |
            | —      | 1101 | Reserved (stops the machine) |
            | `LEA`  | 1110 | Load effective address |
            | `TRAP` | 1111 | GETC x20, OUT x21, PUTS x22, IN x23, PUTSP x24, HALT x25 |
            """)

        # Event handlers
        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, upload_input, keyboard_input, max_cycles],
            outputs=[summary_output, program_output, trace_output, registers_output]
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

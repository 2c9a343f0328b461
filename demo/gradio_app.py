"""LC3-VM Interactive Demo.

A Gradio web interface for running and inspecting LC-3 programs.

Usage:
    cd /path/to/lc3-vm
    python demo/gradio_app.py

Features:
    - Upload an .obj image or paste hex words (first word is the origin)
    - Feed console input to GETC/IN
    - See console output, final registers and condition flag
    - Step-by-step execution trace with disassembly
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from lc3_vm import LC3VM, BufferConsole, ImageLoadError
from lc3_vm.bits import to_word


TRACE_LIMIT = 200
MEMORY_WINDOW = 4


# =============================================================================
# Example Programs
# =============================================================================

# Hex words, one per line; ';' starts a comment. First word is the origin.
EXAMPLE_PROGRAMS = {
    "Hello (PUTS)": """3000        ; .ORIG x3000
E002        ; LEA R0, MSG
F022        ; PUTS
F025        ; HALT
0048        ; MSG: 'H'
0065        ; 'e'
006C        ; 'l'
006C        ; 'l'
006F        ; 'o'
000A        ; newline
0000        ; terminator""",

    "Echo 3 chars (GETC/OUT)": """3000        ; .ORIG x3000
5260        ; AND R1, R1, #0
1263        ; ADD R1, R1, #3
F020        ; LOOP: GETC
F021        ; OUT
127F        ; ADD R1, R1, #-1
03FC        ; BRp LOOP
F025        ; HALT""",

    "Countdown 9..1 (OUT)": """3000        ; .ORIG x3000
5260        ; AND R1, R1, #0
1269        ; ADD R1, R1, #9
2005        ; LOOP: LD R0, ZERO
1001        ; ADD R0, R0, R1
F021        ; OUT
127F        ; ADD R1, R1, #-1
03FB        ; BRp LOOP
F025        ; HALT
0030        ; ZERO: '0'""",

    "Packed string (PUTSP)": """3000        ; .ORIG x3000
E002        ; LEA R0, MSG
F024        ; PUTSP
F025        ; HALT
694C        ; 'L' 'i'
656E        ; 'n' 'e'
0A21        ; '!' newline
0000        ; terminator""",

    "Custom": "",
}


def parse_hex_words(text: str) -> bytes:
    """Turn hex-word text into big-endian image bytes.

    Raises:
        ValueError: If a token is not a 16-bit hex value
    """
    words = []
    for line in text.splitlines():
        line = line.split(";", 1)[0].strip()
        for token in line.split():
            token = token.lower().removeprefix("0x").removeprefix("x")
            value = int(token, 16)
            if not 0 <= value <= 0xFFFF:
                raise ValueError(f"Word out of range: {token}")
            words.append(value)
    return b"".join(w.to_bytes(2, "big") for w in words)


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(program: str, image_file, console_input: str, max_cycles: int) -> tuple:
    """Execute an LC-3 image and return results.

    Args:
        program: Hex-word source (ignored when an image file is given)
        image_file: Uploaded .obj file path, or None
        console_input: Characters available to GETC/IN
        max_cycles: Maximum execution cycles

    Returns:
        Tuple of (output_text, summary_text, trace_text, registers_text)
    """
    console = BufferConsole(console_input)
    vm = LC3VM(console=console, max_cycles=int(max_cycles), trace=True)

    try:
        if image_file is not None:
            vm.load_image(image_file)
        else:
            if not program.strip():
                return "", "Error: No program provided", "", ""
            vm.load_bytes(parse_hex_words(program))
    except (ImageLoadError, ValueError) as e:
        return "", f"Error: {e}", "", ""

    try:
        trace = vm.run()
    except RuntimeError as e:
        error_msg = str(e)
        trace = vm.get_trace()
    else:
        error_msg = None

    # Format summary
    summary = vm.get_summary()
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Cycles: {summary['cycles']}",
        f"Halted: {'Yes' if summary['halted'] else 'No'}",
        f"Input left: {'Yes' if console.has_input else 'No'}",
        f"State valid: {'Yes' if summary['valid'] else 'No'}",
    ]
    if error_msg:
        summary_lines.append(f"\nRuntime: {error_msg}")
    summary_text = "\n".join(summary_lines)

    # Format trace
    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in trace[:TRACE_LIMIT]:
        trace_lines.append(f"\n--- Cycle {entry.cycle} (x{entry.address:04X}) ---")
        trace_lines.append(f"Instruction: {entry.word:04X}  {entry.text}")
        trace_lines.append(f"Key:         {entry.key}")

        pre_regs = entry.pre_state["registers"]
        post_regs = entry.post_state["registers"]
        changes = []
        for reg in sorted(pre_regs.keys()):
            if reg != "PC" and pre_regs[reg] != post_regs[reg]:
                changes.append(f"{reg}: {pre_regs[reg]} -> {post_regs[reg]}")
        if changes:
            trace_lines.append(f"Changes:     {', '.join(changes)}")

    if len(trace) > TRACE_LIMIT:
        trace_lines.append(f"\n... ({len(trace) - TRACE_LIMIT} more entries)")
    trace_text = "\n".join(trace_lines)

    # Format registers
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
    ]
    for reg, value in summary["registers"].items():
        marker = " *" if value != 0 else ""
        reg_lines.append(f"  {reg}: x{value:04X} {value:>6}{marker}")
    reg_lines.append("")
    reg_lines.append(f"  PC:   x{summary['pc']:04X}")
    reg_lines.append(f"  COND: {summary['condition']}")
    reg_lines.append("")
    reg_lines.append("  Memory at PC:")
    for offset, word in enumerate(vm.dump_memory(summary["pc"], MEMORY_WINDOW)):
        address = to_word(summary["pc"] + offset)
        reg_lines.append(f"  x{address:04X}: x{word:04X}")
    registers_text = "\n".join(reg_lines)

    return console.read_output(), summary_text, trace_text, registers_text


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="LC3-VM Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # LC3-VM: LC-3 Virtual Machine

        Runs LC-3 object images: 64K words of memory, eight registers,
        and the GETC/OUT/PUTS/IN/PUTSP/HALT traps wired to the console below.

        **Cycle**: `fetch (PC += 1) -> decode -> execute -> repeat until HALT`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Hello (PUTS)",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Hello (PUTS)"],
                    label="Hex Words (first word is the origin)",
                    lines=15,
                    placeholder="3000\nF025"
                )

                image_upload = gr.File(
                    label="Or upload an .obj image",
                    file_types=[".obj", ".bin"],
                    type="filepath"
                )

                gr.Markdown("### Settings")

                console_input = gr.Textbox(
                    value="abc",
                    label="Console Input",
                    info="Characters read by GETC and IN, in order"
                )
                max_cycles = gr.Slider(
                    minimum=100,
                    maximum=1000000,
                    value=100000,
                    step=100,
                    label="Max Cycles"
                )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                console_output = gr.Textbox(
                    label="Console Output",
                    lines=6,
                    interactive=False
                )
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=10,
                        interactive=False
                    )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Opcode | Bits | Operation | Flags |
            |--------|------|-----------|-------|
            | `ADD` | 0001 | `DR = SR1 + SR2/imm5` | yes |
            | `AND` | 0101 | `DR = SR1 & SR2/imm5` | yes |
            | `NOT` | 1001 | `DR = ~SR` | yes |
            | `BR`  | 0000 | `if nzp & COND: PC += off9` | |
            | `JMP` | 1100 | `PC = BaseR` (RET = JMP R7) | |
            | `JSR` | 0100 | `R7 = PC; PC += off11` / `PC = BaseR` | |
            | `LD`  | 0010 | `DR = mem[PC + off9]` | yes |
            | `LDI` | 1010 | `DR = mem[mem[PC + off9]]` | yes |
            | `LDR` | 0110 | `DR = mem[BaseR + off6]` | yes |
            | `LEA` | 1110 | `DR = PC + off9` | yes |
            | `ST`  | 0011 | `mem[PC + off9] = SR` | |
            | `STI` | 1011 | `mem[mem[PC + off9]] = SR` | |
            | `STR` | 0111 | `mem[BaseR + off6] = SR` | |
            | `TRAP`| 1111 | host trap routine | |

            **Traps**: x20 GETC, x21 OUT, x22 PUTS, x23 IN, x24 PUTSP, x25 HALT
            **PC-relative offsets** are added to the address of the *next* instruction.
            """)

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, image_upload, console_input, max_cycles],
            outputs=[console_output, summary_output, trace_output, registers_output]
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

"""Command-line interface for fskmodem.

Encode bytes to raw s16le PCM, decode PCM back to bytes, and inspect the
filters and sound devices. PCM has no header; pipe it through ffmpeg or
sox for other formats:

    printf 'hello' | fsk-modem encode | ffmpeg -f s16le -ar 11025 -i - out.wav
    ffmpeg -i out.wav -f s16le -ar 11025 - | fsk-modem decode
"""

import argparse
import sys
from contextlib import ExitStack
from typing import BinaryIO, Optional, TextIO

import numpy as np

from .modem.config import ModemConfig, PROFILES, DISCRIMINATORS, SYNC_POLICIES, WINDOW_MODES, config_from_env
from .modem.pcm import read_samples, write_samples


def _open_input(stack: ExitStack, path: str) -> BinaryIO:
    if path == '-':
        return sys.stdin.buffer
    return stack.enter_context(open(path, 'rb'))


def _open_output(stack: ExitStack, path: str) -> BinaryIO:
    if path == '-':
        return sys.stdout.buffer
    return stack.enter_context(open(path, 'wb'))


def config_from_args(args: argparse.Namespace) -> ModemConfig:
    """Profile, then environment, then explicit command-line values."""
    return config_from_env(
        args.profile,
        sample_rate=args.sample_rate,
        baud_rate=args.baud,
        mark_freq=args.mark,
        space_freq=args.space,
        filter_poles=args.poles,
        discriminator=getattr(args, 'discriminator', None),
        sync=getattr(args, 'sync', None),
        start_window=getattr(args, 'start_window', None),
        start_window_mode=getattr(args, 'start_window_mode', None),
    )


def encode(config: ModemConfig, source: BinaryIO, sink: BinaryIO) -> int:
    """Stream bytes from source into PCM on sink, one frame per byte.

    Returns:
        Number of bytes encoded
    """
    from .modem.fsk import FSKModulator

    modulator = FSKModulator(config)
    write_samples(sink, modulator.preamble())

    count = 0
    while True:
        byte = source.read(1)
        if not byte:
            break
        write_samples(sink, modulator.modulate_byte(byte[0]))
        sink.flush()
        count += 1

    write_samples(sink, modulator.postamble())
    sink.flush()
    return count


def decode(
    config: ModemConfig,
    source: BinaryIO,
    sink: BinaryIO,
    stderr: TextIO = sys.stderr,
) -> int:
    """Stream PCM from source into recovered bytes on sink.

    Returns:
        Number of bytes recovered
    """
    from .modem.fsk import FSKDemodulator

    demodulator = FSKDemodulator(config, stderr=stderr)
    count = 0
    for byte in demodulator.demodulate_stream(read_samples(source)):
        sink.write(bytes((byte,)))
        sink.flush()
        count += 1
    return count


def print_info(config: ModemConfig, stdout: Optional[TextIO] = None) -> None:
    """Print derived constants and filter responses at the two tones."""
    stdout = stdout or sys.stdout
    from .modem.discriminator import PhaseDifferenceDiscriminator, PowerRatioDiscriminator
    from .modem.filters import cascade_response

    print(f"Sample rate:     {config.sample_rate:g} Hz", file=stdout)
    print(f"Baud:            {config.baud_rate:g}", file=stdout)
    print(f"Mark / space:    {config.mark_freq:g} / {config.space_freq:g} Hz", file=stdout)
    print(f"Samples per bit: {config.samples_per_bit:.3f}", file=stdout)
    print(f"Filter poles:    {config.filter_poles}", file=stdout)
    print(file=stdout)

    power = PowerRatioDiscriminator(config)
    print("Power-ratio discriminator:", file=stdout)
    print(f"  mark filter at {power.mark_center:g} Hz, space filter at {power.space_center:g} Hz", file=stdout)
    print(f"  low-pass corner {power.corner:g} Hz", file=stdout)
    offsets = [abs(config.mark_freq - power.mark_center), abs(config.space_freq - power.mark_center)]
    mark_db = 20 * np.log10(np.abs(cascade_response(power.mark_filter.stages, offsets, config.sample_rate)))
    print(f"  mark filter: {mark_db[0]:.1f} dB at mark, {mark_db[1]:.1f} dB at space", file=stdout)
    print(f"  opposite-tone power {power.opposite_response:.4f}, normalize {power.normalize:.4f}", file=stdout)
    print(file=stdout)

    phase = PhaseDifferenceDiscriminator(config)
    print("Phase-difference discriminator:", file=stdout)
    print(f"  filter at {phase.center:g} Hz, low-pass corner {phase.corner:g} Hz", file=stdout)


def print_devices(stdout: Optional[TextIO] = None) -> None:
    """Print audio devices in a formatted table."""
    stdout = stdout or sys.stdout
    from .modem.audio_io import SOUNDDEVICE_AVAILABLE, SOUNDDEVICE_ERROR, list_audio_devices

    if not SOUNDDEVICE_AVAILABLE:
        print(f"Audio ERROR: {SOUNDDEVICE_ERROR}", file=stdout)
        print("Install PortAudio (e.g. apt install libportaudio2) and reinstall sounddevice", file=stdout)
        return

    devices = list_audio_devices()
    if not devices:
        print("No audio devices found!", file=stdout)
        return

    print("DEVICES:", file=stdout)
    print("-" * 60, file=stdout)
    for dev in devices:
        flags = []
        if dev['default_in']:
            flags.append("DEFAULT IN")
        if dev['default_out']:
            flags.append("DEFAULT OUT")
        marker = f" [{', '.join(flags)}]" if flags else ""
        print(f"  {dev['index']:3d}: {dev['name'][:40]:<40} "
              f"in {dev['inputs']} out {dev['outputs']}{marker}", file=stdout)
    print(file=stdout)
    print("Usage:", file=stdout)
    print("  MODEM_OUTPUT_DEVICE=5 fsk-modem encode --play < message.txt", file=stdout)
    print("  MODEM_INPUT_DEVICE=3 fsk-modem decode --listen 10", file=stdout)


def _add_modem_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--profile', choices=sorted(PROFILES),
                        help='Modem profile (default: $MODEM_PROFILE or bell103)')
    parser.add_argument('--sample-rate', type=float, help='Sample rate in Hz')
    parser.add_argument('--baud', type=float, help='Symbol rate')
    parser.add_argument('--mark', type=float, help='Mark (1) frequency in Hz')
    parser.add_argument('--space', type=float, help='Space (0) frequency in Hz')
    parser.add_argument('--poles', type=int, help='Butterworth pole count (even)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='fsk-modem',
        description='Bell 103/202 style FSK software modem',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  printf 'hello' | fsk-modem encode > hello.s16
  fsk-modem decode -i hello.s16
  fsk-modem decode --discriminator phase --sync counter < hello.s16
  fsk-modem info --profile bell202
  fsk-modem devices
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')

    encode_parser = subparsers.add_parser('encode', help='Bytes to s16le PCM')
    _add_modem_options(encode_parser)
    encode_parser.add_argument('-i', '--input', default='-', help='Input file (default stdin)')
    encode_parser.add_argument('-o', '--output', default='-', help='Output file (default stdout)')
    encode_parser.add_argument('--play', action='store_true',
                               help='Play through the sound card instead of writing PCM')

    decode_parser = subparsers.add_parser('decode', help='s16le PCM to bytes')
    _add_modem_options(decode_parser)
    decode_parser.add_argument('-i', '--input', default='-', help='Input file (default stdin)')
    decode_parser.add_argument('-o', '--output', default='-', help='Output file (default stdout)')
    decode_parser.add_argument('--discriminator', choices=DISCRIMINATORS,
                               help='Decision metric (default power)')
    decode_parser.add_argument('--sync', choices=SYNC_POLICIES,
                               help='Bit timing policy (default countdown)')
    decode_parser.add_argument('--start-window', type=float,
                               help='Counter sync: start window in bit periods')
    decode_parser.add_argument('--start-window-mode', choices=WINDOW_MODES,
                               help='Counter sync: compare window exactly or at least')
    decode_parser.add_argument('--listen', type=float, metavar='SECONDS',
                               help='Record from the sound card instead of reading PCM')

    info_parser = subparsers.add_parser('info', help='Show derived constants')
    _add_modem_options(info_parser)

    subparsers.add_parser('devices', help='List audio devices')

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the fsk-modem command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == 'devices':
        print_devices()
        return 0

    try:
        config = config_from_args(args)

        if args.command == 'info':
            print_info(config)
            return 0

        with ExitStack() as stack:
            if args.command == 'encode':
                source = _open_input(stack, args.input)
                if args.play:
                    from .modem.modem import Modem
                    with Modem(config) as modem:
                        modem.send(source.read())
                else:
                    encode(config, source, _open_output(stack, args.output))

            elif args.command == 'decode':
                if args.listen is not None:
                    from .modem.audio_io import AudioInterface
                    from .modem.fsk import FSKDemodulator
                    with AudioInterface(sample_rate=config.sample_rate) as audio:
                        samples = audio.receive(args.listen)
                    sink = _open_output(stack, args.output)
                    sink.write(FSKDemodulator(config, stderr=sys.stderr).demodulate(samples))
                    sink.flush()
                else:
                    source = _open_input(stack, args.input)
                    decode(config, source, _open_output(stack, args.output), stderr=sys.stderr)

    except (ValueError, RuntimeError, OSError) as e:
        print(f"fsk-modem: error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())

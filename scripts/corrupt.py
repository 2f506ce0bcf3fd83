from __future__ import annotations

import argparse
import os
import random
import sys
from typing import Iterable, List, Optional

from gmad.reader import read_file
from gmad.errors import GmaError


def _xor_at(path: str, offsets: Iterable[int], mask: int = 0xFF) -> int:
    """XOR the byte at each offset with ``mask``; returns how many were changed."""
    mask &= 0xFF
    changed = 0
    size = os.path.getsize(path)
    with open(path, "r+b") as f:
        for off in offsets:
            if off < 0 or off >= size:
                raise ValueError(f"Offset {off} outside archive (0..{size - 1})")
            f.seek(off)
            old = f.read(1)[0]
            f.seek(off)
            f.write(bytes([old ^ mask]))
            changed += 1
        f.flush()
        os.fsync(f.fileno())
    return changed


def _payload_offsets(path: str) -> List[int]:
    # Lenient read so an already-damaged archive can still be targeted
    a = read_file(path, verify_checksum=False)
    return [off for e in a.entries for off in range(e.offset, e.offset + e.size)]


def cmd_by_offset(args: argparse.Namespace) -> None:
    _xor_at(args.archive, [args.offset], mask=args.xor)
    print(f"Flipped 1 byte at offset {args.offset}")


def cmd_entry(args: argparse.Namespace) -> None:
    a = read_file(args.archive, verify_checksum=False)
    e = a.find(args.name)
    if e is None:
        raise ValueError(f"No entry named {args.name!r}")
    if args.within < 0 or args.within >= e.size:
        raise ValueError(f"--within must be within entry size (0..{e.size - 1})")
    off = e.offset + args.within
    _xor_at(args.archive, [off], mask=args.xor)
    print(f"Flipped 1 byte in {args.name} at archive offset {off}")


def cmd_random(args: argparse.Namespace) -> None:
    if args.count < 1:
        raise ValueError("--count must be at least 1")
    if args.payload_only:
        pool = _payload_offsets(args.archive)
        if not pool:
            raise ValueError("Archive has no payload bytes to flip")
        where = "payload"
    else:
        pool = range(os.path.getsize(args.archive))
        where = "archive"
    rng = random.Random(args.seed)
    # Distinct offsets, so an even number of hits cannot cancel out
    picks = sorted(rng.sample(pool, min(args.count, len(pool))))
    n = _xor_at(args.archive, picks, mask=args.xor)
    print(f"Flipped {n} byte(s) at random {where} offsets: {', '.join(str(p) for p in picks)}")


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="gmad.corrupt", description="Corrupt .gma archives for testing")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_off = sub.add_parser("by-offset", help="Flip one byte at an absolute archive offset")
    p_off.add_argument("archive", help="Path to .gma archive")
    p_off.add_argument("--offset", type=int, required=True, help="Absolute byte offset in archive")
    p_off.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_off.set_defaults(func=cmd_by_offset)

    p_entry = sub.add_parser("entry", help="Flip a byte inside one entry's payload")
    p_entry.add_argument("archive", help="Path to .gma archive")
    p_entry.add_argument("--name", required=True, help="Entry name as stored in the archive")
    p_entry.add_argument("--within", type=int, default=0, help="Byte offset within the entry (default 0)")
    p_entry.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_entry.set_defaults(func=cmd_entry)

    p_rand = sub.add_parser("random", help="Flip N distinct random bytes in the archive")
    p_rand.add_argument("archive", help="Path to .gma archive")
    p_rand.add_argument("--count", type=int, default=1, help="Number of random byte flips (default 1)")
    p_rand.add_argument("--seed", type=int, default=None, help="PRNG seed for reproducibility")
    p_rand.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_rand.add_argument(
        "--payload-only",
        action="store_true",
        help="Only pick offsets inside entry payloads, leaving header and file table intact",
    )
    p_rand.set_defaults(func=cmd_random)

    args = ap.parse_args(argv)
    try:
        args.func(args)
    except (GmaError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()

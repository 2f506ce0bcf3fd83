from __future__ import annotations

import os
import sys
import time
import argparse

from typing import List, Optional

from gmad.builder import Builder
from gmad.reader import Archive, Entry, read_file
from gmad.pathutil import norm_path, archive_name, dest_path
from gmad.errors import GmaError, ChecksumMismatch


def _iter_tree(root: str, skip: Optional[str] = None) -> List[str]:
    """Return files under ``root`` as sorted forward-slash relative paths.

    Args:
        root: Directory to walk.
        skip: Absolute path to leave out (the archive being written).
    """
    found: List[str] = []
    for dirpath, dirs, files in os.walk(root):
        dirs.sort()
        for fn in sorted(files):
            full = os.path.join(dirpath, fn)
            if skip and os.path.abspath(full) == skip:
                continue
            if not os.path.isfile(full):
                continue
            found.append(archive_name(root, full))
    return sorted(found)


def _next_nonconflicting_path(path: str) -> str:
    if not os.path.lexists(path):
        return path
    base_dir = os.path.dirname(path)
    root, ext = os.path.splitext(os.path.basename(path))
    i = 1
    while True:
        candidate = os.path.join(base_dir, f"{root} ({i}){ext}")
        if not os.path.lexists(candidate):
            return candidate
        i += 1


def _warn_checksum(archive: Archive) -> None:
    if archive.checksum_ok is False:
        print(
            "Warning: archive checksum mismatch; contents may be damaged. Run 'gmad verify' for details.",
            file=sys.stderr,
        )


def cmd_create(
    output: str,
    input_dir: str,
    *,
    title: str,
    author: str = "",
    description: str = "",
    owner_id: int = 0,
    addon_version: int = 1,
    timestamp: Optional[int] = None,
    quiet: bool = False,
) -> bool:
    """Pack every file under a directory into a new archive.

    Args:
        output: Destination .gma path.
        input_dir: Directory whose files are stored under their relative paths.
        title: Addon title.
        author: Addon author.
        description: Addon description (stored verbatim).
        owner_id: Owner account id stored in the header.
        addon_version: Addon version number.
        timestamp: Fixed creation timestamp; current time when None.
        quiet: Only print the summary line.
    """
    if not os.path.isdir(input_dir):
        raise FileNotFoundError(f"Not a directory: {input_dir}")
    t0 = time.time()
    b = Builder(title, owner_id)
    b.set_author(author)
    b.set_description(description)
    b.set_addon_version(addon_version)
    b.set_timestamp(timestamp)
    total = 0
    for rel in _iter_tree(input_dir, skip=os.path.abspath(output)):
        with open(os.path.join(input_dir, *rel.split("/")), "rb") as fh:
            data = fh.read()
        b.file_from_bytes(rel, data)
        total += len(data)
        if not quiet:
            print(f"     adding: {rel} ({len(data)} bytes)")

    tmp = output + ".tmp"
    try:
        with open(tmp, "wb") as fh:
            b.write_to(fh)
        os.replace(tmp, output)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)
    dt = max(time.time() - t0, 1e-6)
    print(f"Done: {len(b)} files, {total} bytes in {dt:.1f}s -> {output}")
    return True


def cmd_list(archive: str) -> bool:
    """List archive entries as ``size<TAB>name`` lines."""
    a = read_file(archive, verify_checksum=False)
    _warn_checksum(a)
    for e in a.entries:
        print(f"{e.size}\t{e.name}")
    return True


def cmd_info(archive: str) -> bool:
    """Print archive metadata."""
    a = read_file(archive, verify_checksum=False)
    _warn_checksum(a)
    h = a.header
    try:
        created = time.strftime("%Y-%m-%d %H:%M:%S UTC", time.gmtime(h.timestamp))
    except (OverflowError, OSError, ValueError):
        created = str(h.timestamp)
    if a.checksum is None:
        crc_state = "absent"
    else:
        crc_state = f"{a.checksum:08x} ({'ok' if a.checksum_ok else 'mismatch'})"
    print(f"Title:         {h.title}")
    print(f"Author:        {h.author}")
    print(f"Description:   {h.description}")
    print(f"Owner id:      {h.owner_id}")
    print(f"Created:       {created}")
    print(f"Format:        {h.version}")
    print(f"Addon version: {h.addon_version}")
    if h.required_content:
        print(f"Requires:      {', '.join(h.required_content)}")
    print(f"Files:         {len(a.entries)} ({sum(e.size for e in a.entries)} bytes)")
    print(f"Checksum:      {crc_state}")
    return True


def cmd_extract(
    archive: str,
    *,
    outdir: str = ".",
    paths: Optional[List[str]] = None,
    exists: str = "rename",
    quiet: bool = False,
) -> bool:
    """Extract files from an archive to a directory.

    Each entry's CRC-32 is checked before it is written. Entry names that
    would escape ``outdir`` are skipped with a warning.
    """
    a = read_file(archive)
    entries: List[Entry] = a.entries
    if paths:
        wanted = [norm_path(p) for p in paths]
        entries = [e for e in entries if any(e.name == rp or e.name.startswith(rp + "/") for rp in wanted)]

    written = 0
    skipped = 0
    renamed = 0
    for e in entries:
        try:
            dst = dest_path(outdir, e.name)
        except ValueError as exc:
            print(f"Warning: skipping unsafe path: {exc}", file=sys.stderr)
            skipped += 1
            continue
        if not e.verify():
            raise ChecksumMismatch(f"Checksum mismatch for {e.name!r}", expected=e.crc)
        os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
        actual_dst = dst
        if os.path.lexists(actual_dst):
            if exists == "overwrite":
                if os.path.isdir(actual_dst) and not os.path.islink(actual_dst):
                    raise RuntimeError(f"Cannot overwrite directory with file: {actual_dst}")
            elif exists == "skip":
                print(f"    skipping: {e.name} (exists)")
                skipped += 1
                continue
            elif exists == "rename":
                actual_dst = _next_nonconflicting_path(actual_dst)
            else:
                raise RuntimeError(f"Destination exists: {actual_dst}")
        with open(actual_dst, "wb") as fh:
            fh.write(e.content)
        written += 1
        if not quiet:
            print(f"  extracting: {e.name}")
        if actual_dst != dst:
            print(f"       note: renamed to {actual_dst}")
            renamed += 1
    print(f"Done: {written} files extracted, {skipped} skipped, {renamed} renamed")
    return True


def cmd_verify(archive: str) -> bool:
    """Check the trailing archive checksum and every per-file checksum."""
    a = read_file(archive, verify_checksum=False)
    ok = True
    if a.checksum is None:
        print("Archive checksum: absent")
    elif a.checksum_ok:
        print(f"Archive checksum: {a.checksum:08x} ok")
    else:
        print(f"Archive checksum: {a.checksum:08x} MISMATCH")
        ok = False
    bad = [e for e in a.entries if not e.verify()]
    for e in bad:
        print(f"  damaged: {e.name}")
    if bad:
        ok = False
    print("OK" if ok else f"FAILED ({len(bad)} of {len(a.entries)} files damaged)")
    return ok


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="gmad", description="Create and unpack .gma addon archives")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_create = sub.add_parser("create", help="Create an archive from a directory")
    ap_create.add_argument("output", help="Output .gma path")
    ap_create.add_argument("input", help="Input directory")
    ap_create.add_argument("--title", required=True, help="Addon title")
    ap_create.add_argument("--author", default="", help="Addon author")
    ap_create.add_argument("--description", default="", help="Addon description (stored verbatim, often JSON)")
    ap_create.add_argument("--owner-id", type=int, default=0, help="Owner account id (default 0)")
    ap_create.add_argument("--addon-version", type=int, default=1, help="Addon version (default 1)")
    ap_create.add_argument(
        "--timestamp",
        type=int,
        default=None,
        help="Fixed creation timestamp (seconds since epoch) for reproducible output; default: now",
    )
    ap_create.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")

    ap_info = sub.add_parser("info", help="Show archive metadata")
    ap_info.add_argument("archive", help="Archive path")

    ap_extract = sub.add_parser("extract", help="Extract files")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("paths", nargs="*", help="Specific archive paths to extract (files or directories)")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    ap_extract.add_argument(
        "--exists",
        choices=["overwrite", "skip", "rename", "fail"],
        default="rename",
        help=(
            "What to do if a destination file exists: overwrite, skip, "
            "rename (append ' (n)' before extension), or fail. Default: rename"
        ),
    )

    ap_verify = sub.add_parser("verify", help="Verify archive and file checksums")
    ap_verify.add_argument("archive", help="Archive path")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "create":
            cmd_create(
                args.output,
                args.input,
                title=args.title,
                author=args.author,
                description=args.description,
                owner_id=args.owner_id,
                addon_version=args.addon_version,
                timestamp=args.timestamp,
                quiet=args.quiet,
            )
        elif args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd == "info":
            cmd_info(args.archive)
        elif args.cmd == "extract":
            cmd_extract(args.archive, outdir=args.outdir, paths=args.paths, exists=args.exists, quiet=args.quiet)
        elif args.cmd == "verify":
            sys.exit(0 if cmd_verify(args.archive) else 1)
        else:
            raise RuntimeError("Unknown command")
    except (GmaError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()

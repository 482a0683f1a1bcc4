import os
import pathlib

from typing import Any

from log import logger
from soundbank import SoundBank
from wwise import ReplacementWem


WEM_EXT = ".wem"


def to_posix(path: str):
    return pathlib.PurePath(path).as_posix()


def list_files_recursive(path: str = ".", ext: str = "") -> list[str]:
    files = []
    if os.path.isfile(path):
        return [path]
    else:
        for entry in sorted(os.listdir(path)):
            full_path = os.path.join(path, entry)
            if os.path.isdir(full_path):
                files.extend(list_files_recursive(full_path, ext))
            elif ext == "" or os.path.splitext(entry)[1].lower() == ext:
                files.append(full_path)
        return files


def open_bank(path: str, cfg: Any = None) -> SoundBank:
    """
    Open the bank at `path` and remember it among the recent files of `cfg`.
    """
    bank = SoundBank.from_file(path)
    if cfg != None:
        cfg.add_recent_file(path)
    return bank


def export_wems(bank: SoundBank, dest: str = "", cfg: Any = None) -> int:
    """
    Write every wem payload of `bank` to `dest`, one file per wem named by its
    id. When `dest` is empty the export directory of `cfg` is used.

    @return (int): total number of bytes written
    @exception
    - ValueError: no destination directory
    - OSError
    """
    if dest == "" and cfg != None:
        dest = cfg.export_path
    if dest == "":
        raise ValueError("No directory to export wems into")
    os.makedirs(dest, exist_ok=True)

    total = 0
    wems = bank.wems()
    for wem in wems:
        filename = os.path.join(dest, f"{wem.get_id()}{WEM_EXT}")
        with open(filename, "wb") as f:
            total += wem.copy_to(f)
    logger.info(f"Exported {len(wems)} wems ({total} bytes) to {dest}")
    return total


def replacement_from_file(wem_index: int, path: str) -> ReplacementWem:
    """
    Open `path` for a replacement of the wem at `wem_index`. The returned
    request owns the open file; it must stay open until the bank is written.
    """
    f = open(path, "rb")
    length = os.fstat(f.fileno()).st_size
    return ReplacementWem(wem_index, f, length)

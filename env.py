import os

import fileutil


def get_data_path():
    """
    @return
    - POSIX path of a directory holding sample SoundBanks, or ""
    """
    location = os.environ.get("BNKDATA")
    return "" if location == None else fileutil.to_posix(location)
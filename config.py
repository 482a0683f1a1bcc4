import os
import pickle

from log import logger


MAX_RECENT_FILES = 10


class Config:

    def __init__(self,
                 recent_files: list[str] | None = None,
                 export_path: str = ""):
        self.recent_files = recent_files if recent_files != None else []
        self.export_path = export_path

    def add_recent_file(self, path: str):
        """
        Move `path` to the front of the recent files, dropping entries that no
        longer exist.
        """
        path = os.path.abspath(path)
        self.recent_files = [path] + [
            file for file in self.recent_files
            if file != path and os.path.exists(file)
        ]
        del self.recent_files[MAX_RECENT_FILES:]

    def save_config(self, config_path: str = "config.pickle"):
        try:
            with open(config_path, "wb") as f:
                pickle.dump(self, f)
        except (OSError, pickle.PickleError) as e:
            logger.error("Error occur when serializing configuration")
            logger.error(e)

    def get(self, attr: str, default=None):
        return getattr(self, attr, default)


def load_config(config_path: str = "config.pickle") -> Config | None:
    if not os.path.exists(config_path):
        new_cfg = Config()
        new_cfg.save_config(config_path)
        return new_cfg

    cfg: Config | None = None
    try:
        # Reading existence configuration
        with open(config_path, "rb") as f:
            cfg = pickle.load(f)
        if not isinstance(cfg, Config):
            raise ValueError("Invalid configuration data")
    except Exception as e:
        logger.critical("Error occurred when de-serializing configuration")
        logger.critical(e)
        logger.critical(f"Delete {config_path} to resolve the error")
        return None

    # For backwards compatibility with configuration created before these
    # were added
    cfg.recent_files = cfg.get("recent_files", [])
    cfg.recent_files = [file for file in cfg.recent_files if os.path.exists(file)]
    cfg.export_path = cfg.get("export_path", "")
    cfg.save_config(config_path)
    return cfg

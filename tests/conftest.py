"""Point settings at throwaway locations before any app module reads them."""

import os
import tempfile

os.environ.setdefault("APP_ENV", "dev")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="stockroom-uploads-"))
os.environ.setdefault("BCRYPT_ROUNDS", "4")

"""
This module contains the configuration settings for procfixture.
It defines paths, timeouts, naming conventions and logging options used by
the process supervisor and the fixtures built on top of it.
Every value can be overridden from the environment or a `.env` file.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file (the real environment wins)
load_dotenv()

#* --- Core Paths ---
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent  # Project Root
ASSETS_DIR = pathlib.Path(os.getenv("TEST_ASSETS_DIR", str(BASE_DIR / "assets" / "bin")))

#* --- Binary Resolution ---
# TEST_ASSET_ETCD, TEST_ASSET_KUBE_APISERVER, ...
ASSET_ENV_PREFIX = "TEST_ASSET_"

#* --- Data Directories ---
DATA_DIR_PREFIX = "procfixture_"
# None means the platform temp directory.
DATA_DIR_ROOT = os.getenv("PROCFIXTURE_DATA_DIR_ROOT") or None

#* --- Network ---
URL_SCHEME = "http"
DEFAULT_HOST = "localhost"
PORT_ALLOCATION_ATTEMPTS = 10

#* --- Supervisor Timings (seconds) ---
DEFAULT_START_TIMEOUT = float(os.getenv("PROCFIXTURE_START_TIMEOUT", "20"))
DEFAULT_STOP_TIMEOUT = float(os.getenv("PROCFIXTURE_STOP_TIMEOUT", "20"))
KILL_TIMEOUT = float(os.getenv("PROCFIXTURE_KILL_TIMEOUT", "5"))
READINESS_POLL_INTERVAL = 0.1
HEALTH_CHECK_INTERVAL = 0.1
HEALTH_CHECK_REQUEST_TIMEOUT = 1
OUTPUT_DRAIN_TIMEOUT = 2

#* --- Session ---
RUNNING_EXIT_CODE = -1

#* --- Logging ---
LOG_LEVEL = os.getenv("PROCFIXTURE_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("PROCFIXTURE_LOG_FILE") or None
# Level used for lines captured from supervised processes ('proc.<name>' loggers).
PROCESS_OUTPUT_LOG_LEVEL = os.getenv("PROCFIXTURE_PROCESS_OUTPUT_LOG_LEVEL", "DEBUG").upper()

#* --- Etcd ---
ETCD_BINARY_NAME = "etcd"
ETCD_DEFAULT_ARGS = (
    "--listen-peer-urls=http://localhost:0",
    "--advertise-client-urls={url}",
    "--listen-client-urls={url}",
    "--data-dir={data_dir}",
)
ETCD_INSECURE_START_MESSAGE = "serving insecure client requests on "
ETCD_SECURE_START_MESSAGE = "serving client requests on "

#* --- API Server ---
APISERVER_BINARY_NAME = "kube-apiserver"
APISERVER_DEFAULT_ARGS = (
    "--advertise-address=127.0.0.1",
    "--etcd-servers={etcd_url}",
    "--cert-dir={data_dir}",
    "--insecure-port={port}",
    "--insecure-bind-address={host}",
    "--secure-port=0",
    "--admission-control=AlwaysAdmit",
    "--service-cluster-ip-range=10.0.0.0/24",
)
APISERVER_HEALTH_CHECK_PATH = "/healthz"

"""Download and unpack a pulumi release into a private home directory.

Layout after install:

    {home}/bin/pulumi
    {home}/bin/pulumi-language-*  (bundled language hosts)
"""

import logging
import platform
import shutil
import sys
import tarfile
from pathlib import Path
from typing import Optional

import requests

from config import DEFAULT_DOWNLOAD_URL, DEFAULT_ENGINE_VERSION
from errors import EngineInstallError

logger = logging.getLogger(__name__)

SUPPORTED_OS = {'linux': 'linux', 'darwin': 'darwin'}
SUPPORTED_ARCH = {'x86_64': 'x64', 'amd64': 'x64', 'arm64': 'arm64', 'aarch64': 'arm64'}
DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 1024 * 64


def release_target(system: Optional[str] = None, machine: Optional[str] = None) -> tuple[str, str]:
    """Map the host OS/arch to pulumi release naming.

    Raises:
        EngineInstallError: On platforms pulumi does not publish tarballs for
    """
    system = (system or sys.platform).lower()
    machine = (machine or platform.machine()).lower()

    if system.startswith('win'):
        raise EngineInstallError("Windows not supported now! Please install pulumi manually.")
    os_name = SUPPORTED_OS.get(system)
    arch = SUPPORTED_ARCH.get(machine)
    if not os_name or not arch:
        raise EngineInstallError(
            f"Pulumi is not supported on {system}/{machine}. "
            "More information: https://github.com/pulumi/pulumi"
        )
    return os_name, arch


def download(url: str, dest: Path) -> Path:
    """Stream url to dest."""
    logger.info(f"Downloading {url}...")
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as resp:
            resp.raise_for_status()
            with open(dest, 'wb') as f:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
    except requests.RequestException as e:
        raise EngineInstallError(f"Download failed from {url}: {e}") from e
    return dest


def _safe_extract(archive: Path, dest: Path) -> None:
    """Extract a tarball, rejecting members that escape dest."""
    dest_resolved = dest.resolve()
    try:
        with tarfile.open(archive, 'r:gz') as tar:
            for member in tar.getmembers():
                target = (dest / member.name).resolve()
                if dest_resolved not in target.parents and target != dest_resolved:
                    raise EngineInstallError(f"Refusing to extract {member.name} outside {dest}")
            tar.extractall(dest)
    except tarfile.TarError as e:
        raise EngineInstallError(f"Could not extract {archive}: {e}") from e


def install_engine(
    home_dir: Path,
    version: str = DEFAULT_ENGINE_VERSION,
    url_template: str = DEFAULT_DOWNLOAD_URL,
) -> Path:
    """Install pulumi into home_dir/bin and return the binary path.

    Any previous (possibly partial) install under home_dir is replaced.
    """
    os_name, arch = release_target()
    url = url_template.format(version=version, os=os_name, arch=arch)

    home_dir = Path(home_dir)
    tmp_dir = home_dir.parent / '.pulumiTmp'
    for stale in (home_dir, tmp_dir):
        if stale.exists():
            shutil.rmtree(stale)
    home_dir.mkdir(parents=True)
    tmp_dir.mkdir(parents=True)

    logger.info(f"Installing Pulumi v{version} into {home_dir}...")
    try:
        archive = download(url, tmp_dir / 'pulumi.tar.gz')
        _safe_extract(archive, tmp_dir)

        # Release tarballs unpack to pulumi/ (binaries directly inside) on
        # current versions and pulumi/bin/ on older ones
        unpacked = tmp_dir / 'pulumi'
        source = unpacked / 'bin' if (unpacked / 'bin').is_dir() else unpacked
        if not source.is_dir():
            raise EngineInstallError(f"Unexpected archive layout from {url}")
        shutil.copytree(source, home_dir / 'bin')
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)

    binary = home_dir / 'bin' / 'pulumi'
    if not binary.exists():
        raise EngineInstallError(f"pulumi binary missing after install: {binary}")
    binary.chmod(binary.stat().st_mode | 0o111)
    logger.info("Pulumi installed")
    return binary

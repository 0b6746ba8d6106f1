"""Platform bundlers.

One module per package format; ``bundle`` picks the right one for a job.
"""

from __future__ import annotations

from platbundle.core.contracts import PackageType
from platbundle.services.bundlers.appimage import build_appimage
from platbundle.services.bundlers.base import BundleJob, BundleResult
from platbundle.services.bundlers.deb import build_deb
from platbundle.services.bundlers.dmg import build_dmg
from platbundle.services.bundlers.macos import build_app
from platbundle.services.bundlers.msi import build_msi
from platbundle.services.bundlers.nsis import build_nsis
from platbundle.services.bundlers.rpm import build_rpm

__all__ = ["BundleJob", "BundleResult", "bundle"]


def bundle(job: BundleJob) -> BundleResult:
    """Produce the package for ``job.platform``."""
    match job.platform:
        case PackageType.DEB:
            return build_deb(job)
        case PackageType.RPM:
            return build_rpm(job)
        case PackageType.APPIMAGE:
            return build_appimage(job)
        case PackageType.APP:
            return build_app(job)
        case PackageType.DMG:
            return build_dmg(job)
        case PackageType.MSI:
            return build_msi(job)
        case PackageType.NSIS:
            return build_nsis(job)

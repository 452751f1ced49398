"""Text and JSON rendering of scan results."""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from shai_hulud_scan.config import ScanConfig
from shai_hulud_scan.models import LockfileRecord, ScanResult

SEVERITY = "high"
FINDING_TYPE = "shai-hulud-compromise"

NO_LOCKFILES_MESSAGE = "⚠️ No package-lock.json, yarn.lock, or pnpm-lock.yaml found"
CLEAN_MESSAGE = "✅ No packages affected by Shai-Hulud attack found"


# ------------------ Report Generator ------------------
class ReportGenerator:
    """Report generation in text and JSON formats"""

    def __init__(self, config: Optional[ScanConfig] = None):
        self.config = config or ScanConfig()

    def render(self, result: ScanResult, fmt: Optional[str] = None, group_by: Optional[str] = None) -> str:
        """Render findings; ``group_by`` is ``lockfile`` (default) or ``package``"""
        fmt = (fmt or self.config.output_format).lower()
        group_by = (group_by or self.config.group_by).lower()

        if fmt == "json":
            return json.dumps(self._finding_records(result, group_by), indent=2)
        if not result.lockfiles:
            return NO_LOCKFILES_MESSAGE
        if result.is_clean:
            return CLEAN_MESSAGE
        if group_by == "package":
            return self._render_text_by_package(result)
        return self._render_text_by_lockfile(result)

    def render_lockfile_list(self, records: List[LockfileRecord], fmt: Optional[str] = None) -> str:
        """List discovered lockfiles without matching"""
        fmt = (fmt or self.config.output_format).lower()
        if fmt == "json":
            return json.dumps(
                [{"lockfile": r.path, "dialect": r.dialect, "revision": r.revision} for r in records],
                indent=2,
            )
        if not records:
            return NO_LOCKFILES_MESSAGE

        lines = [f"🔍 Found {len(records)} lockfiles:"]
        for record in records:
            lines.append(f"  📁 {record.path} ({record.label})")
        return "\n".join(lines)

    def save_report(self, content: str, path) -> Path:
        target = Path(path)
        target.write_text(content + "\n", encoding="utf-8")
        logging.info(f"Report saved: {target}")
        return target

    def _finding_records(self, result: ScanResult, group_by: str) -> List[Dict]:
        records = []
        if group_by == "package":
            for package, lockfiles in result.findings.items():
                for lockfile in lockfiles:
                    records.append(self._finding(package, lockfile))
            return records

        for lockfile in result.lockfiles:
            for package in sorted(result.findings_for(lockfile)):
                records.append(self._finding(package, lockfile))
        return records

    @staticmethod
    def _finding(package: str, lockfile: LockfileRecord) -> Dict:
        return {
            "package": package,
            "lockfile": lockfile.path,
            "severity": SEVERITY,
            "type": FINDING_TYPE,
        }

    def _render_text_by_lockfile(self, result: ScanResult) -> str:
        output = f"❌ Found {result.total} packages affected by Shai-Hulud attack:\n"
        for lockfile in result.affected_lockfiles():
            output += f"\n📁 {lockfile.path} ({lockfile.label})\n"
            for package in sorted(result.findings_for(lockfile)):
                output += f"  ❌ ALERT: {package} - Known risk\n"
        return output.rstrip("\n")

    def _render_text_by_package(self, result: ScanResult) -> str:
        output = f"❌ Found {result.total} packages affected by Shai-Hulud attack:\n\n"
        for package, lockfiles in result.findings.items():
            for lockfile in lockfiles:
                output += f"❌ ALERT: {package} in {lockfile.path} - Known risk\n"
        return output.rstrip("\n")

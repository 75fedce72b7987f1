import csv
import os
import logging
from typing import Dict, List, Tuple
from datetime import datetime
from dibreport.core.models import ImageRecord, SEVERITY_ORDER, Vulnerability, severity_rank
from dibreport.core.registry import RegistrySnapshot

logger = logging.getLogger(__name__)

class ReportGenerator:
    def __init__(self, snapshot: RegistrySnapshot):
        self.snapshot = snapshot
        self.images = snapshot.all_images()

    def _tests_cell(self, record: ImageRecord) -> Tuple[str, str]:
        result = record.test_result
        if result is None:
            return "N/A", "N/A"
        failed = len(result.failed_cases())
        cell = f"{result.passing_count}/{result.test_count} passed"
        if failed:
            cell += f", {failed} failed"
        return cell, "yes" if result.is_consistent else "no"

    def _findings(self) -> List[Tuple[str, str, Vulnerability]]:
        rows = []
        for record in self.images:
            if record.scan_result is None:
                continue
            for target in record.scan_result.results:
                for vuln in target.vulnerabilities or []:
                    rows.append((record.name, target.target, vuln))
        # Stable, so each image keeps the scanner's order within a severity
        return sorted(rows, key=lambda row: severity_rank(row[2].severity))

    def severity_totals(self) -> Dict[str, int]:
        totals = {severity: 0 for severity in SEVERITY_ORDER}
        for record in self.images:
            if record.scan_result is None:
                continue
            for severity, count in record.scan_result.severity_counts().items():
                totals[severity] = totals.get(severity, 0) + count
        return totals

    def generate_markdown(self, output_path: str = "report.md"):
        # Ensure directory exists
        dir_path = os.path.dirname(output_path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        with open(output_path, 'w') as f:
            f.write("# Image Build Report\n")
            f.write(f"Generated at: {datetime.now().isoformat()}\n\n")

            missing = [n for n in self.snapshot.image_names if n not in self.snapshot.images]
            f.write("## Summary\n")
            f.write(f"- Images: {len(self.snapshot.image_names)}\n")
            f.write(f"- Loaded: {len(self.images)}\n")
            if missing:
                f.write(f"- Not loaded: {', '.join(missing)}\n")
            for severity, count in self.severity_totals().items():
                f.write(f"- {severity}: {count}\n")
            f.write("\n")

            f.write("## Images\n")
            f.write("| Image | Build Log | Tests | Consistent | " + " | ".join(SEVERITY_ORDER) + " |\n")
            f.write("|---|---|---|---|" + "---|" * len(SEVERITY_ORDER) + "\n")
            for record in self.images:
                tests, consistent = self._tests_cell(record)
                build_log = "yes" if record.build_log is not None else "no"
                if record.scan_result is not None:
                    counts = record.scan_result.severity_counts()
                    severities = " | ".join(str(counts[s]) for s in SEVERITY_ORDER)
                else:
                    severities = " | ".join("N/A" for _ in SEVERITY_ORDER)
                f.write(f"| {record.name} | {build_log} | {tests} | {consistent} | {severities} |\n")
            f.write("\n")

            f.write("## Vulnerabilities\n")
            f.write("| Image | Target | ID | Package | Installed | Fixed | Severity | Title |\n")
            f.write("|---|---|---|---|---|---|---|---|\n")
            for image, target, v in self._findings():
                title = (v.title[:80] + '...') if v.title and len(v.title) > 80 else (v.title or "")
                fixed = v.fixed_version if v.has_fix else "N/A"
                f.write(f"| {image} | {target} | {v.vulnerability_id} | {v.pkg_name} | {v.installed_version or ''} | {fixed} | {v.severity} | {title} |\n")

    def generate_csv(self, output_path: str = "report.csv"):
        # Ensure directory exists
        dir_path = os.path.dirname(output_path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        fieldnames = ['image', 'target', 'vulnerability_id', 'package', 'installed_version', 'fixed_version', 'severity', 'cvss_score', 'title']
        with open(output_path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for image, target, v in self._findings():
                writer.writerow({
                    'image': image,
                    'target': target,
                    'vulnerability_id': v.vulnerability_id,
                    'package': v.pkg_name,
                    'installed_version': v.installed_version,
                    'fixed_version': v.fixed_version,
                    'severity': v.severity,
                    'cvss_score': v.best_cvss_score(),
                    'title': v.title,
                })

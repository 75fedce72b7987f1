"""Sample tool outputs shared by the tests."""
import copy
import json
import os

TRIVY_DOCUMENT = {
    "SchemaVersion": 2,
    "CreatedAt": "2024-03-01T10:00:00Z",
    "ArtifactName": "registry.example.org/db:1.2.0",
    "ArtifactType": "container_image",
    "Metadata": {
        "OS": {"Family": "debian", "Name": "12.5", "EOSL": False},
        "ImageID": "sha256:0f1e2d",
        "DiffIDs": ["sha256:aaa", "sha256:bbb"],
        "RepoTags": ["registry.example.org/db:1.2.0"],
        "RepoDigests": ["registry.example.org/db@sha256:ccc"],
        "ImageConfig": {
            "architecture": "amd64",
            "created": "2024-02-28T08:00:00Z",
            "history": [
                {"created": "2024-02-20T08:00:00Z", "created_by": "ADD rootfs.tar.xz /"},
                {"created": "2024-02-28T08:00:00Z", "created_by": "CMD [\"bash\"]", "empty_layer": True},
            ],
            "os": "linux",
            "rootfs": {"type": "layers", "diff_ids": ["sha256:aaa", "sha256:bbb"]},
            "config": {
                "Cmd": ["postgres"],
                "Env": ["PATH=/usr/local/bin:/usr/bin"],
                "Labels": {"org.opencontainers.image.version": "1.2.0"},
                "User": "postgres",
            },
        },
    },
    "Results": [
        {
            "Target": "registry.example.org/db:1.2.0 (debian 12.5)",
            "Class": "os-pkgs",
            "Type": "debian",
            "Vulnerabilities": [
                {
                    "VulnerabilityID": "CVE-2024-0002",
                    "PkgID": "libc6@2.36-9",
                    "PkgName": "libc6",
                    "PkgIdentifier": {"PURL": "pkg:deb/debian/libc6@2.36-9", "UID": "a1b2"},
                    "InstalledVersion": "2.36-9",
                    "Status": "affected",
                    "Layer": {"DiffID": "sha256:aaa"},
                    "PrimaryURL": "https://avd.aquasec.com/nvd/cve-2024-0002",
                    "DataSource": {"ID": "debian", "Name": "Debian Security Tracker", "URL": "https://salsa.debian.org/security-tracker-team/security-tracker"},
                    "Title": "glibc: low impact issue",
                    "Severity": "LOW",
                    "VendorSeverity": {"debian": 1, "nvd": 2},
                },
                {
                    "VulnerabilityID": "CVE-2024-0001",
                    "PkgID": "openssl@3.0.11-1",
                    "PkgName": "openssl",
                    "InstalledVersion": "3.0.11-1",
                    "FixedVersion": "3.0.13-1",
                    "Status": "fixed",
                    "Layer": {"DiffID": "sha256:bbb"},
                    "SeveritySource": "nvd",
                    "Title": "openssl: remote code execution",
                    "Description": "A crafted certificate leads to code execution.",
                    "Severity": "CRITICAL",
                    "CweIDs": ["CWE-787"],
                    "VendorSeverity": {"nvd": 4},
                    "CVSS": {
                        "nvd": {"V3Vector": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H", "V3Score": 9.8},
                        "redhat": {"V2Vector": "AV:N/AC:L/Au:N/C:P/I:P/A:P", "V2Score": 7.5},
                    },
                    "References": ["https://www.openssl.org/news/secadv/20240101.txt"],
                    "PublishedDate": "2024-01-02T15:00:00Z",
                    "LastModifiedDate": "2024-01-10T09:30:00Z",
                },
                {
                    "VulnerabilityID": "CVE-2024-0003",
                    "PkgName": "zlib1g",
                    "InstalledVersion": "1:1.2.13",
                    "FixedVersion": "",
                    "Severity": "MEDIUM",
                },
            ],
        },
        {
            "Target": "usr/local/lib/python3.11/site-packages",
            "Class": "lang-pkgs",
            "Type": "python-pkg",
        },
    ],
}

GOSS_DOCUMENT = {
    "name": "goss",
    "errors": "0",
    "tests": "2",
    "failures": "1",
    "skipped": "0",
    "time": "0.000",
    "timestamp": "2022-10-20T18:29:26Z",
    "testcases": [
        {
            "class_name": "goss-image-test",
            "file": "docker/image-test",
            "name": "Test lorem 1",
            "time": "0.000",
            "system_out": "Test results lorem 1",
        },
        {
            "class_name": "goss-image-test",
            "file": "docker/image-test",
            "name": "User debian uid",
            "time": "0.000",
            "failure": "User: debian: uid: doesn't match, expect: [1666] found: [1664]",
        },
    ],
}

JUNIT_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<testsuite name="goss" errors="0" tests="3" failures="1" skipped="1" time="0.012" timestamp="2022-10-20T18:29:26Z">
<testcase classname="goss-image-test" file="docker/image-test" name="Test lorem 1" time="0.004">
<system-out>Test results lorem 1</system-out>
</testcase>
<testcase classname="goss-image-test" file="docker/image-test" name="User debian uid" time="0.004">
<failure>User: debian: uid: doesn't match, expect: [1666] found: [1664]</failure>
</testcase>
<testcase classname="goss-image-test" file="docker/image-test" name="Port 8080" time="0.004">
<skipped/>
</testcase>
</testsuite>
"""


def trivy_document():
    return copy.deepcopy(TRIVY_DOCUMENT)


def goss_document():
    return copy.deepcopy(GOSS_DOCUMENT)


def write_run(root, run, images, artifacts):
    """Lay out a report run on disk.

    `artifacts` maps image name to {filename: content}; dict content is
    written as JSON.
    """
    run_dir = os.path.join(root, run)
    os.makedirs(run_dir, exist_ok=True)
    with open(os.path.join(run_dir, "map.js"), "w") as f:
        f.write("const dib_images = [\n")
        for name in images:
            f.write(f"  '{name}',\n")
        f.write("];\n")
    for image, files in artifacts.items():
        image_dir = os.path.join(run_dir, "data", image)
        os.makedirs(image_dir, exist_ok=True)
        for filename, content in files.items():
            with open(os.path.join(image_dir, filename), "w") as f:
                if isinstance(content, dict):
                    json.dump(content, f)
                else:
                    f.write(content)
    return run_dir

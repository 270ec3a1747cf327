#!/usr/bin/env python3
"""
Create ./venv and install the bot (editable, with test extras).

Usage:
    python scripts/setup_venv.py
"""
import os
import platform
import subprocess
import sys
from pathlib import Path

VENV_DIR = "venv"
MIN_VERSION = (3, 9)


def run(cmd):
    print(f"▶ {' '.join(cmd)}")
    subprocess.check_call(cmd)


def is_windows():
    return platform.system().lower() == "windows"


def main():
    project_dir = Path(__file__).resolve().parents[1]
    os.chdir(project_dir)
    print(f"📂 Project directory: {project_dir}")

    if os.environ.get("VIRTUAL_ENV"):
        print("❌ Deactivate the current virtual environment first")
        sys.exit(1)

    if sys.version_info[:2] < MIN_VERSION:
        print(f"❌ Python {MIN_VERSION[0]}.{MIN_VERSION[1]}+ required, found {sys.version.split()[0]}")
        sys.exit(1)

    if not Path(VENV_DIR).exists():
        print("🐍 Creating virtual environment...")
        run([sys.executable, "-m", "venv", VENV_DIR])
    else:
        print("ℹ️ Virtual environment already exists")

    if is_windows():
        pip = Path(VENV_DIR) / "Scripts" / "pip.exe"
        activate_hint = f"{VENV_DIR}\\Scripts\\Activate.ps1"
    else:
        pip = Path(VENV_DIR) / "bin" / "pip"
        activate_hint = f"source {VENV_DIR}/bin/activate"

    run([str(pip), "install", "--upgrade", "pip", "setuptools", "wheel"])
    print("📥 Installing tradebot-platform...")
    run([str(pip), "install", "-e", ".[test]"])

    env_file = Path("config_env") / "primary.env"
    if not env_file.exists():
        print(f"⚠️ {env_file} missing - copy config_env/primary.env.example and fill it in")

    print("\n✅ Setup complete!")
    print(f"👉 Activate environment with:\n   {activate_hint}")


if __name__ == "__main__":
    main()

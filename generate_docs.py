#!/usr/bin/env python3
"""Generate API documentation from code annotations.

Detects the host OS, picks the first installed documentation tool (jsdoc,
swagger or doxygen), loads the per-environment ``.env`` file, installs npm
dependencies when the tool needs them and runs the tool with its output
captured in a timestamped log under ``logs/``. Static assets are copied into
the output directory afterwards and the temp directory is emptied.
"""
from __future__ import annotations

import argparse
import logging
import os
import shlex
import shutil
import subprocess
import sys
import textwrap
import tomllib
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, NoReturn, Sequence

import psutil
from dotenv import load_dotenv

DEFAULT_ENV = "development"
CONFIG_FILENAME = "docgen.toml"
SUPPORTED_DOC_TOOLS: tuple[str, ...] = ("jsdoc", "swagger", "doxygen")
NPM_TOOLS = frozenset({"jsdoc", "swagger"})
HELPER_RUNTIMES = ("node", "npm")
DEFAULT_PATHS: dict[str, str] = {
    "config_dir": "config",
    "log_dir": "logs",
    "output_dir": "docs/api",
    "temp_dir": "temp",
    "static_dir": "static-docs",
}

LOGGER = logging.getLogger("generate_docs")


@dataclass(frozen=True)
class DocsConfig:
    project_dir: Path
    config_dir: Path
    log_dir: Path
    output_dir: Path
    temp_dir: Path
    static_dir: Path
    tools: Sequence[str] = SUPPORTED_DOC_TOOLS

    @property
    def required_dirs(self) -> tuple[Path, ...]:
        return (self.config_dir, self.log_dir, self.output_dir, self.temp_dir)


def setup_logging(verbose: bool = False) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("[%(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    for existing in list(LOGGER.handlers):
        LOGGER.removeHandler(existing)
    LOGGER.addHandler(handler)
    LOGGER.setLevel(logging.DEBUG if verbose else logging.INFO)


def fail(message: str) -> NoReturn:
    LOGGER.error(message)
    sys.exit(1)


def load_docs_config(project_dir: Path) -> DocsConfig:
    """Build the run configuration, applying ``[docs]`` overrides from docgen.toml."""
    project_dir = project_dir.resolve()
    config_path = project_dir / CONFIG_FILENAME

    section: Mapping[str, Any] = {}
    if config_path.exists():
        try:
            with config_path.open("rb") as config_file:
                data = tomllib.load(config_file)
        except tomllib.TOMLDecodeError as exc:
            fail(f"Error: could not parse {config_path}: {exc}")
        section = data.get("docs", {})
        if not isinstance(section, Mapping):
            fail(f"Error: [docs] section in {CONFIG_FILENAME} must be a table")
        unknown = sorted(set(section) - set(DEFAULT_PATHS) - {"tools"})
        if unknown:
            fail(f"Error: unknown keys in [docs] section of {CONFIG_FILENAME}: {', '.join(unknown)}")

    paths = {
        key: resolve_path(project_dir, section.get(key, default), key)
        for key, default in DEFAULT_PATHS.items()
    }
    tools = normalize_tools(section.get("tools", SUPPORTED_DOC_TOOLS))
    return DocsConfig(project_dir=project_dir, tools=tools, **paths)


def resolve_path(project_dir: Path, raw_path: Any, key: str) -> Path:
    if not isinstance(raw_path, str):
        fail(f"Error: '{key}' must be a string (got {type(raw_path).__name__})")
    candidate = Path(raw_path)
    if not candidate.is_absolute():
        candidate = project_dir / candidate
    return candidate


def normalize_tools(raw_tools: Any) -> tuple[str, ...]:
    if not isinstance(raw_tools, Sequence) or isinstance(raw_tools, (str, bytes)):
        fail("Error: 'tools' must be an array of tool names")
    tools = tuple(str(tool) for tool in raw_tools)
    if not tools:
        fail("Error: 'tools' cannot be empty")
    unsupported = [tool for tool in tools if tool not in SUPPORTED_DOC_TOOLS]
    if unsupported:
        fail(
            f"Error: unsupported documentation tools: {', '.join(unsupported)}. "
            f"Choose from: {', '.join(SUPPORTED_DOC_TOOLS)}"
        )
    return tools


def detect_os(platform: str | None = None) -> str:
    platform = sys.platform if platform is None else platform
    if platform.startswith("linux"):
        LOGGER.info("Detected OS: Linux")
        return "linux"
    if platform.startswith("darwin"):
        LOGGER.info("Detected OS: macOS")
        return "macos"
    fail(f"Unsupported OS: {platform}. This script supports Linux and macOS only.")


def probe_version(executable: str) -> str:
    for flag in ("--version", "-v"):
        try:
            result = subprocess.run(
                [executable, flag],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError:
            continue
        output = (result.stdout or result.stderr).strip()
        if result.returncode == 0 and output:
            return output.splitlines()[0]
    return "unknown"


def check_command(name: str) -> bool:
    executable = shutil.which(name)
    if executable is None:
        LOGGER.error("Error: %s is not installed. Please install it before proceeding.", name)
        return False
    LOGGER.info("%s is installed. Version: %s", name, probe_version(executable))
    return True


def check_requirements(config: DocsConfig) -> str:
    """Return the first installed documentation tool, exiting if there is none.

    Missing helper runtimes (node, npm) only produce a warning.
    """
    LOGGER.info("Checking for required documentation tools...")
    selected = next((tool for tool in config.tools if check_command(tool)), None)
    if selected is None:
        fail(
            "Error: No supported documentation tool found. "
            f"Please install one of: {' '.join(config.tools)}."
        )

    for runtime in HELPER_RUNTIMES:
        if not check_command(runtime):
            LOGGER.warning(
                "Warning: %s is not installed. Some documentation tools may not work without it.",
                runtime,
            )
    LOGGER.info("Required tools check completed. Using %s for documentation generation.", selected)
    return selected


def load_env_variables(config: DocsConfig, environment: str) -> Path | None:
    LOGGER.info("Loading environment variables...")
    env_file = config.config_dir / f".env.{environment}"
    loaded: Path | None = None
    if env_file.is_file():
        LOGGER.info("Loading environment variables from %s...", env_file)
        load_dotenv(env_file, override=True)
        loaded = env_file
    else:
        LOGGER.warning(
            "Warning: Environment file %s not found. Using system environment variables.",
            env_file,
        )

    if not os.environ.get("NODE_ENV"):
        os.environ["NODE_ENV"] = environment
    LOGGER.info("Environment set to %s for documentation generation.", os.environ["NODE_ENV"])
    return loaded


def setup_directories(config: DocsConfig) -> list[Path]:
    LOGGER.info("Setting up required directories for documentation output and logs...")
    created: list[Path] = []
    for directory in config.required_dirs:
        if directory.exists():
            LOGGER.info("%s found. Proceeding with setup checks.", directory)
            continue
        LOGGER.info("Creating directory %s...", directory)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            fail(f"Error: Failed to create directory {directory}. Check permissions. ({exc})")
        created.append(directory)
    LOGGER.info("All required directories are set up.")
    return created


def terminate_process_tree(pid: int) -> None:
    try:
        proc = psutil.Process(pid)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return

    children = proc.children(recursive=True)
    for child in children:
        try:
            child.terminate()
        except psutil.Error:
            pass
    _, alive = psutil.wait_procs(children, timeout=3)
    for survivor in alive:
        try:
            survivor.kill()
        except psutil.Error:
            pass
    try:
        proc.terminate()
        proc.wait(timeout=5)
    except psutil.TimeoutExpired:
        proc.kill()
    except psutil.Error:
        pass


def wait_for(process: subprocess.Popen) -> int:
    try:
        return process.wait()
    except KeyboardInterrupt:
        LOGGER.error("Error: Interrupted. Stopping PID %s...", process.pid)
        terminate_process_tree(process.pid)
        raise


def run_command(command: Sequence[str], cwd: Path, log_file: Path | None = None) -> int:
    """Run ``command`` in ``cwd`` and return its exit code.

    With ``log_file`` set, stdout and stderr are combined into that file;
    otherwise the child writes to the console. A command that cannot be
    started returns 127, like a shell would.
    """
    LOGGER.debug("Running: %s", shlex.join(command))
    try:
        if log_file is None:
            return wait_for(subprocess.Popen(command, cwd=cwd))
        with log_file.open("wb") as log_handle:
            process = subprocess.Popen(
                command,
                cwd=cwd,
                stdout=log_handle,
                stderr=subprocess.STDOUT,
            )
            return wait_for(process)
    except OSError as exc:
        LOGGER.error("Error: could not run %s: %s", command[0], exc)
        return 127


def install_dependencies(config: DocsConfig, tool: str) -> bool:
    LOGGER.info("Checking for project dependencies...")
    if tool not in NPM_TOOLS:
        LOGGER.info("Skipping dependency installation for %s as it does not require npm.", tool)
        return False

    if (config.project_dir / "node_modules").is_dir():
        LOGGER.info("node_modules directory found. Skipping dependency installation.")
        return False

    LOGGER.info("node_modules directory not found. Installing dependencies...")
    if not (config.project_dir / "package.json").is_file():
        fail("Error: package.json not found. Ensure you're in the correct directory.")

    npm = shutil.which("npm")
    if npm is None:
        fail(f"Error: npm is not installed. It is required to install dependencies for {tool}.")

    if run_command([npm, "install"], cwd=config.project_dir) != 0:
        fail("Error: Failed to install dependencies. Check npm logs for details.")
    LOGGER.info("Dependencies installed successfully.")
    return True


def log_file_path(config: DocsConfig, now: datetime | None = None) -> Path:
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return config.log_dir / f"docs-generation-{stamp}.log"


def build_jsdoc_command(config: DocsConfig, executable: str) -> list[str]:
    if (config.project_dir / "jsdoc.conf.json").is_file():
        return [executable, "-c", "jsdoc.conf.json", "-d", str(config.output_dir)]
    LOGGER.warning("Warning: jsdoc.conf.json not found. Using default settings.")
    return [executable, "./src", "-r", "-d", str(config.output_dir)]


def find_swagger_spec(config: DocsConfig) -> str | None:
    for candidate in ("swagger.yaml", "swagger.json"):
        if (config.project_dir / candidate).is_file():
            return candidate
    return None


def generate_documentation(config: DocsConfig, tool: str, now: datetime | None = None) -> bool:
    log_file = log_file_path(config, now)
    LOGGER.info("Generating API documentation using %s...", tool)
    LOGGER.info("Logging output to %s...", log_file)

    if tool == "jsdoc":
        LOGGER.info("Running JSDoc for documentation generation...")
        executable = shutil.which("jsdoc")
        if executable is None:
            LOGGER.error("Error: jsdoc not installed.")
            return False
        label = "JSDoc"
        command = build_jsdoc_command(config, executable)
        success_message = f"JSDoc documentation generated successfully in {config.output_dir}."
    elif tool == "swagger":
        LOGGER.info("Running Swagger for documentation generation...")
        spec_file = find_swagger_spec(config)
        if spec_file is None:
            LOGGER.error("Error: Swagger configuration file (swagger.yaml or swagger.json) not found.")
            return False
        executable = shutil.which("swagger-cli")
        if executable is None:
            LOGGER.error("Error: swagger-cli not installed. Please install it for Swagger documentation.")
            return False
        label = "Swagger"
        command = [executable, "bundle", spec_file, "-o", str(config.output_dir / "swagger.json")]
        success_message = f"Swagger documentation generated successfully in {config.output_dir}."
    elif tool == "doxygen":
        LOGGER.info("Running Doxygen for documentation generation...")
        if not (config.project_dir / "Doxyfile").is_file():
            LOGGER.error("Error: Doxyfile not found. Ensure Doxygen configuration is set up.")
            return False
        executable = shutil.which("doxygen")
        if executable is None:
            LOGGER.error("Error: doxygen not installed.")
            return False
        label = "Doxygen"
        command = [executable, "Doxyfile"]
        success_message = (
            "Doxygen documentation generated successfully. Check output directory "
            f"in Doxyfile (default: {config.output_dir})."
        )
    else:
        LOGGER.error("Error: Unsupported documentation tool: %s.", tool)
        return False

    if run_command(command, cwd=config.project_dir, log_file=log_file) != 0:
        LOGGER.error("Error: %s documentation generation failed. Check %s for details.", label, log_file)
        return False
    LOGGER.info(success_message)
    return True


def clear_directory(directory: Path) -> list[Path]:
    failures: list[Path] = []
    for entry in directory.iterdir():
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError:
            failures.append(entry)
    return failures


def post_process_docs(config: DocsConfig) -> None:
    LOGGER.info("Post-processing generated documentation...")
    if not config.output_dir.is_dir():
        LOGGER.warning(
            "Warning: Documentation output directory %s not found. Generation may have failed.",
            config.output_dir,
        )
        LOGGER.info("Documentation post-processing completed.")
        return

    LOGGER.info("Documentation output found in %s.", config.output_dir)
    if config.static_dir.is_dir():
        LOGGER.info(
            "Copying static documentation assets from %s to %s...",
            config.static_dir,
            config.output_dir,
        )
        try:
            shutil.copytree(config.static_dir, config.output_dir, dirs_exist_ok=True)
        except OSError as exc:
            LOGGER.warning("Warning: Failed to copy static assets. (%s)", exc)

    LOGGER.info("Cleaning up temporary files in %s if any...", config.temp_dir)
    try:
        leftovers = clear_directory(config.temp_dir) if config.temp_dir.is_dir() else []
    except OSError as exc:
        LOGGER.warning("Warning: Failed to clean up temporary files. (%s)", exc)
    else:
        if leftovers:
            LOGGER.warning(
                "Warning: Failed to clean up temporary files: %s",
                ", ".join(entry.name for entry in leftovers),
            )
    LOGGER.info("Documentation post-processing completed.")


def run_pipeline(config: DocsConfig, environment: str) -> int:
    tool = check_requirements(config)
    load_env_variables(config, environment)
    setup_directories(config)
    install_dependencies(config, tool)
    if not generate_documentation(config, tool):
        LOGGER.error("Error: Documentation generation process failed. Check logs above for details.")
        return 1
    post_process_docs(config)

    LOGGER.info("Documentation generation process completed successfully!")
    LOGGER.info("Next steps:")
    LOGGER.info("1. Review detailed logs in %s for generation details.", config.log_dir)
    LOGGER.info("2. Check generated documentation in %s.", config.output_dir)
    LOGGER.info("3. Serve the documentation locally or deploy it as needed.")
    return 0


class UsageParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stdout)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> UsageParser:
    parser = UsageParser(
        prog="generate-docs",
        description="Generate API documentation with jsdoc, swagger or doxygen",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """
            Example:
              generate-docs development
              generate-docs staging --project-dir ../api

            Note: Ensure required tools (e.g., jsdoc, swagger, doxygen) are installed
            and configuration files are set up.
            """
        ),
    )
    parser.add_argument(
        "environment",
        nargs="*",
        help=(
            "Target environment for documentation (development, staging, production). "
            f"Default: {DEFAULT_ENV}"
        ),
    )
    parser.add_argument(
        "--project-dir",
        type=Path,
        default=Path.cwd(),
        help="Directory containing the sources and tool configuration (default: current directory)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Also log the commands being run")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(args.verbose)

    if len(args.environment) > 1:
        LOGGER.error("Error: Too many arguments provided.")
        parser.print_help(sys.stdout)
        return 1
    environment = args.environment[0] if args.environment else DEFAULT_ENV

    LOGGER.info("Starting API documentation generation setup for %s environment...", environment)
    detect_os()
    config = load_docs_config(args.project_dir)
    try:
        return run_pipeline(config, environment)
    except KeyboardInterrupt:
        LOGGER.error("Error: Documentation generation interrupted.")
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

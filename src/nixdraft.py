"""nixdraft: generate a Nix package expression from a URL.

Sequence of a run: describe the URL with ``nurl``, query the registry behind
it, pick a revision and version, realise the source, choose a builder, map
dependencies and discover hashes, then write the expression and optionally
commit it.
"""
from __future__ import annotations

import asyncio
import io
import json
import logging
import os
import sys
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple
from urllib.parse import urlsplit

from args import parse_args
from builder import (
    Builder,
    BuildGoModule,
    BuildPythonPackage,
    BuildRustPackage,
    CargoVendor,
    MkDerivation,
    MkDerivationNoCC,
    PythonFormat,
    SourceSignals,
    enumerate_builders,
)
from cli_config import Config, load_config
from common.errors import CommandError, NixDraftError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from common.process import get_stdout
from constants import Constants, ExitCodes
from context import PipelineContext
from fetcher import FetchCrate, Fetcher, FetchPypi, PackageInfo, from_nurl, is_known
from frontend import Frontend, make_frontend
from inputs import AllInputs, write_all_lambda_inputs, write_env, write_inputs, write_lambda_input
from lang import go as golang
from lang import rust
from lang.python import (
    Pyproject,
    PYPROJECT_FILE,
    PythonDependencies,
    load_python_dependencies,
    python_import_name,
)
from license import scan_license_files
from manifest import (
    find_changelog,
    nix_string,
    write_imports_check,
    write_meta,
    write_python_dependencies,
)
from vcs import commit_files
from versioning.models import Pypi, PypiFormat
from versioning.resolver import resolve_version

logger = logging.getLogger(__name__)

RUST_HOOKS = ("cargo", "rustPlatform.cargoSetupHook", "rustc")
DEFAULT_OUTPUT_NAME = "default.nix"


@dataclass
class Selection:
    """What the user settled on before the source is fetched."""

    fetcher: Fetcher
    url: str
    pname: str
    rev: str
    version: str
    description: str = ""
    homepage: str = ""
    file_url_prefix: Optional[str] = None
    licenses: Dict[str, float] = field(default_factory=dict)
    python_dependencies: PythonDependencies = field(default_factory=PythonDependencies)
    pypi_format: PypiFormat = PypiFormat.TAR_GZ
    nurl_flags: List[str] = field(default_factory=list)


@dataclass
class Draft:
    """Everything the manifest renderer needs once the source is available."""

    selection: Selection
    ctx: PipelineContext
    config: Config
    nixpkgs: str
    src_expr: str
    src: str
    src_dir: Path
    signals: SourceSignals
    out_dir: Path
    keep_cargo_lock: bool = False
    extra_files: List[Path] = field(default_factory=list)


def _pname_from_url(url: str) -> Optional[str]:
    try:
        path = urlsplit(url).path
    except ValueError as exc:
        logger.warning("Cannot parse url %s: %s", url, exc)
        return None
    last = path.rstrip("/").rsplit("/", 1)[-1]
    if last.endswith(".git"):
        last = last[:-len(".git")]
    return last or None


async def describe_url(url: str, ctx: PipelineContext) -> Fetcher:
    """Ask nurl which fetcher ``url`` needs."""
    stdout = await get_stdout([Constants.NURL, url, "-p"])
    try:
        return from_nurl(json.loads(stdout), ctx.licenses)
    except ValueError as exc:
        raise NixDraftError(f"failed to parse nurl output: {exc}") from exc


async def select_package(url: str, fetcher: Fetcher, frontend: Frontend, config: Config) -> Selection:
    """Query the registry and let the frontend settle revision, version and pname."""
    if not is_known(fetcher):
        rev, _ = frontend.rev(None)
        version = frontend.version(resolve_version(rev, None))
        pname = frontend.pname(_pname_from_url(url))
        return Selection(fetcher=fetcher, url=url, pname=pname, rev=rev, version=version, homepage=url)

    client = await fetcher.create_client(config.access_tokens)
    info: PackageInfo = await fetcher.get_package_info(client)
    selection = Selection(
        fetcher=fetcher,
        url=url,
        pname="",
        rev="",
        version="",
        description=info.description,
        homepage=info.homepage or url,
        file_url_prefix=info.file_url_prefix,
        licenses={name: 1.0 for name in info.license},
        python_dependencies=info.python_dependencies,
    )

    rev, kind = frontend.rev(info.revisions)
    if kind is None:
        kind = await fetcher.get_version(client, rev)
    if isinstance(kind, Pypi) and isinstance(fetcher, FetchPypi):
        fetcher.pname = kind.pname
        selection.pypi_format = kind.format
    default_version = resolve_version(rev, kind)

    if await fetcher.has_submodules(client, rev) and not frontend.fetch_submodules():
        selection.nurl_flags.append("-S")

    selection.rev = rev
    selection.version = frontend.version(default_version)
    selection.pname = frontend.pname(info.pname)
    return selection


async def source_expression(selection: Selection, nixpkgs: str) -> str:
    """Fetcher call for the chosen revision, produced by nurl."""
    cmd = [Constants.NURL, *selection.nurl_flags, "-n", nixpkgs]
    fetcher, pname, rev, version = selection.fetcher, selection.pname, selection.rev, selection.version

    if isinstance(fetcher, FetchCrate):
        found = (await get_stdout([*cmd, selection.url, rev, "-H"])).strip()
        name_line = "inherit pname version;" if pname == fetcher.pname else (
            f"pname = {nix_string(fetcher.pname)};\n    inherit version;"
        )
        return f'fetchCrate {{\n    {name_line}\n    hash = "{found}";\n  }}'

    if isinstance(fetcher, FetchPypi):
        cmd.append("-H")
        ext = ""
        if selection.pypi_format is not PypiFormat.TAR_GZ:
            ext = f'\n    extension = "{selection.pypi_format.value}";'
            cmd.extend(["-A", "extension", selection.pypi_format.value])
        found = (await get_stdout([*cmd, f"https://pypi.org/project/{fetcher.pname}", rev])).strip()
        name_line = "inherit pname version;" if pname == fetcher.pname else (
            f"pname = {nix_string(fetcher.pname)};\n    inherit version;"
        )
        return f'fetchPypi {{\n    {name_line}\n    hash = "{found}";{ext}\n  }}'

    if rev and rev == version:
        cmd.extend(["-o", "rev", "version"])
    elif version and version in rev:
        cmd.extend(["-O", "rev", rev.replace(version, "${version}", 1)])
    cmd.append(selection.url)
    if rev:
        cmd.append(rev)
    return (await get_stdout([*cmd, "-i", "2"])).strip()


async def realise_source(pname: str, version: str, nixpkgs: str, src_expr: str) -> str:
    """Build the source derivation and return its store path."""
    expr = (
        f"let pname={nix_string(pname)};version={nix_string(version)};"
        f"in(import({nixpkgs}){{}}).{src_expr}"
    )
    stdout = await get_stdout([
        Constants.NIX,
        "build",
        "--extra-experimental-features",
        "nix-command",
        "--impure",
        "--no-link",
        "--json",
        "--expr",
        expr,
    ])
    try:
        return json.loads(stdout)[0]["outputs"]["out"]
    except (ValueError, LookupError, TypeError) as exc:
        raise NixDraftError("failed to build source") from exc


def unpack_pypi(archive: str, fmt: PypiFormat, dest: Path, dirname: str) -> Path:
    """Extract an sdist and return the project directory inside it."""
    if fmt is PypiFormat.ZIP:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(dest)
    else:
        with tarfile.open(archive, "r:gz") as tf:
            tf.extractall(dest, filter="data")

    candidate = dest / dirname
    if candidate.is_dir():
        return candidate
    entries = [p for p in dest.iterdir() if p.is_dir()]
    if len(entries) == 1:
        return entries[0]
    raise NixDraftError(f"failed to unpack pypi package: {dirname} not found")


def resolve_output(requested: str, frontend: Frontend, overwrite: Optional[bool]) -> Optional[Tuple[Path, Path]]:
    """Map the requested output to (directory, file); None when the user keeps an existing file."""
    output = Path(requested)
    if output.is_dir():
        out_path = output / DEFAULT_OUTPUT_NAME
        if out_path.exists() and not frontend.should_overwrite(out_path, overwrite):
            return None
        return output, out_path
    if output.exists():
        if not frontend.should_overwrite(output, overwrite):
            return None
        return output.parent, output
    if requested.endswith("/"):
        output.mkdir(parents=True, exist_ok=True)
        return output, output / DEFAULT_OUTPUT_NAME
    output.parent.mkdir(parents=True, exist_ok=True)
    return output.parent, output


def _lambda_head(builder: Builder) -> str:
    if isinstance(builder, BuildGoModule):
        return "buildGoModule"
    if isinstance(builder, BuildPythonPackage):
        return "python3" if builder.application else "buildPythonPackage"
    if isinstance(builder, BuildRustPackage):
        return "rustPlatform"
    if isinstance(builder, MkDerivationNoCC):
        return "stdenvNoCC"
    return "stdenv"


def _seed_native_inputs(draft: Draft, builder: Builder, inputs: AllInputs) -> None:
    signals = draft.signals
    if isinstance(builder, BuildPythonPackage):
        if signals.has_poetry_lock:
            inputs.native("python3.pkgs.poetry-core" if builder.application else "poetry-core")
        if builder.rust is not None:
            inputs.native(*RUST_HOOKS)
    elif isinstance(builder, MkDerivation):
        if signals.has_cmake:
            inputs.native("cmake")
        if signals.has_meson:
            inputs.native("meson", "ninja")
        if signals.has_zig:
            inputs.native("zig.hook")
        if builder.rust is not None:
            inputs.native(*RUST_HOOKS)


def _header(out: io.StringIO, builder: str, selection: Selection, src_expr: str) -> None:
    out.write(
        f"}}:\n\n{builder} rec {{\n"
        f"  pname = {nix_string(selection.pname)};\n"
        f"  version = {nix_string(selection.version)};\n\n"
        f"  src = {src_expr};\n\n"
    )


async def _cargo_hash(draft: Draft, inputs: AllInputs) -> str:
    sel = draft.selection
    return await rust.cargo_deps_hash(
        draft.ctx.rust_table, inputs, sel.pname, sel.version, draft.src, draft.src_dir, draft.nixpkgs
    )


async def _cargo_lock(draft: Draft, inputs: AllInputs) -> rust.CargoLockFile:
    lock = await rust.load_cargo_lock(
        draft.ctx.rust_table, inputs, draft.out_dir, draft.src_dir, draft.keep_cargo_lock
    )
    draft.extra_files.append(draft.out_dir / rust.CARGO_LOCK)
    return lock


def _cargo_vendor_block(found: str) -> str:
    return (
        "  cargoDeps = rustPlatform.fetchCargoVendor {\n"
        "    inherit src;\n"
        '    name = "${pname}-${version}";\n'
        f'    hash = "{found}";\n'
        "  };\n\n"
    )


async def render(draft: Draft, builder: Builder) -> str:
    """Render the complete expression for ``builder``."""
    sel = draft.selection
    out = io.StringIO()
    out.write("{ lib\n")
    written: Set[str] = {"lib"}
    write_lambda_input(out, written, _lambda_head(builder))

    inputs = AllInputs()
    _seed_native_inputs(draft, builder, inputs)
    write_lambda_input(out, written, sel.fetcher.name)

    licenses = dict(sel.licenses)
    python_deps = sel.python_dependencies
    pyproject: Optional[Pyproject] = None

    if isinstance(builder, BuildGoModule):
        go_sum = golang.read_go_sum(draft.src_dir)
        if go_sum:
            golang.load_go_dependencies(draft.ctx.go_table, inputs, go_sum)
        vendor_hash = await golang.go_vendor_hash(
            sel.pname, sel.version, draft.src, draft.src_dir, go_sum, draft.nixpkgs
        )
        native, build = write_all_lambda_inputs(out, inputs, written)
        _header(out, "buildGoModule", sel, draft.src_expr)
        out.write(f"  vendorHash = {vendor_hash};\n\n")

    elif isinstance(builder, BuildPythonPackage):
        cargo_block = ""
        cargo_lock = None
        if builder.rust is CargoVendor.FETCH_CARGO_VENDOR:
            cargo_block = _cargo_vendor_block(await _cargo_hash(draft, inputs))
        elif builder.rust is CargoVendor.IMPORT_CARGO_LOCK:
            cargo_lock = await _cargo_lock(draft, inputs)

        if builder.format is PythonFormat.PYPROJECT:
            pyproject = Pyproject.from_path(draft.src_dir / PYPROJECT_FILE)
            if pyproject is not None:
                expression = pyproject.get_license()
                if expression:
                    for name in draft.ctx.licenses.parse_expression(expression, "pyproject.toml"):
                        licenses.setdefault(name, 1.0)
                pyproject.load_build_dependencies(inputs, builder.application)
        declared = load_python_dependencies(draft.src_dir, pyproject)
        if declared is not None and not declared.is_empty():
            python_deps = declared

        if builder.application:
            written.add("python3")
        native, build = write_all_lambda_inputs(out, inputs, written)
        if not builder.application:
            for name in sorted(python_deps.always | set().union(*python_deps.optional.values())):
                write_lambda_input(out, written, name)

        kind = "python3.pkgs.buildPythonApplication" if builder.application else "buildPythonPackage"
        out.write(
            f"}}:\n\n{kind} rec {{\n"
            f"  pname = {nix_string(sel.pname)};\n"
            f"  version = {nix_string(sel.version)};\n"
            f'  format = "{builder.format.value}";\n\n'
            f"  src = {draft.src_expr};\n\n"
        )
        out.write(cargo_block)
        if cargo_lock is not None:
            out.write("  cargoDeps = rustPlatform.importCargoLock ")
            await rust.write_cargo_lock(out, cargo_lock)

    elif isinstance(builder, BuildRustPackage):
        if builder.vendor is CargoVendor.FETCH_CARGO_VENDOR:
            found = await _cargo_hash(draft, inputs)
            native, build = write_all_lambda_inputs(out, inputs, written)
            _header(out, "rustPlatform.buildRustPackage", sel, draft.src_expr)
            out.write(f'  cargoHash = "{found}";\n\n')
        else:
            cargo_lock = await _cargo_lock(draft, inputs)
            native, build = write_all_lambda_inputs(out, inputs, written)
            _header(out, "rustPlatform.buildRustPackage", sel, draft.src_expr)
            out.write("  cargoLock = ")
            await rust.write_cargo_lock(out, cargo_lock)

    elif isinstance(builder, MkDerivation):
        cargo_block = ""
        cargo_lock = None
        if builder.rust is CargoVendor.FETCH_CARGO_VENDOR:
            cargo_block = _cargo_vendor_block(await _cargo_hash(draft, inputs))
        elif builder.rust is CargoVendor.IMPORT_CARGO_LOCK:
            cargo_lock = await _cargo_lock(draft, inputs)
        native, build = write_all_lambda_inputs(out, inputs, written)
        _header(out, "stdenv.mkDerivation", sel, draft.src_expr)
        out.write(cargo_block)
        if cargo_lock is not None:
            out.write("  cargoDeps = rustPlatform.importCargoLock ")
            await rust.write_cargo_lock(out, cargo_lock)

    else:
        native, build = write_all_lambda_inputs(out, inputs, written)
        _header(out, "stdenvNoCC.mkDerivation", sel, draft.src_expr)

    if native:
        write_inputs(out, inputs.native_build_inputs, "nativeBuildInputs")
    if build:
        write_inputs(out, inputs.build_inputs, "buildInputs")

    if isinstance(builder, BuildGoModule):
        golang.write_ldflags(out, draft.src_dir)
    elif isinstance(builder, BuildPythonPackage):
        write_python_dependencies(out, python_deps, builder.application)
        write_imports_check(out, python_import_name(sel.pname, pyproject))

    write_env(out, inputs)

    changelog = None
    if sel.file_url_prefix:
        name = find_changelog(draft.src_dir)
        if name:
            changelog = f"{sel.file_url_prefix}{name}"
    for name, score in scan_license_files(draft.ctx.licenses, draft.src_dir).items():
        licenses.setdefault(name, score)

    platforms = None
    if isinstance(builder, (MkDerivation, MkDerivationNoCC)):
        platforms = "inherit (zig.meta) platforms" if draft.signals.has_zig else "platforms = platforms.all"
    library = isinstance(builder, BuildPythonPackage) and not builder.application

    write_meta(
        out,
        description=sel.description,
        homepage=sel.homepage,
        changelog=changelog,
        licenses=licenses,
        maintainers=draft.config.maintainers,
        main_program=None if library else sel.pname,
        platforms=platforms,
    )
    return out.getvalue()


async def run(args) -> int:
    """One complete run. Returns the process exit code."""
    config = load_config(args.CONFIG)
    ctx = await asyncio.to_thread(PipelineContext.load)
    frontend = make_frontend(args.HEADLESS)

    url = args.URL or frontend.url()
    fetcher = await describe_url(url, ctx)
    selection = await select_package(url, fetcher, frontend, config)
    if not selection.pname:
        raise NixDraftError("a pname is required")

    nixpkgs = args.NIXPKGS or config.nixpkgs or Constants.DEFAULT_NIXPKGS
    src_expr = await source_expression(selection, nixpkgs)
    src = await realise_source(selection.pname, selection.version, nixpkgs, src_expr)
    if is_debug_enabled(logger):
        logger.debug(
            "Source realised",
            extra=extra_context(
                event="source_ready",
                component="cli",
                action="realise_source",
                target=selection.pname,
                path=src
            )
        )

    with tempfile.TemporaryDirectory(prefix=f"{Constants.PROG_NAME}-") as tmp:
        if isinstance(fetcher, FetchPypi):
            src_dir = await asyncio.to_thread(
                unpack_pypi, src, selection.pypi_format, Path(tmp), f"{fetcher.pname}-{selection.version}"
            )
        else:
            src_dir = Path(src)

        signals = SourceSignals.from_dir(src_dir)
        builder = frontend.builder(enumerate_builders(signals))

        output = args.OUTPUT or frontend.output(selection.pname)
        resolved = resolve_output(output, frontend, args.OVERWRITE)
        if resolved is None:
            return ExitCodes.SUCCESS.value
        out_dir, out_path = resolved

        keep_lock = False
        lock_target = out_dir / rust.CARGO_LOCK
        uses_lock = CargoVendor.IMPORT_CARGO_LOCK in (
            getattr(builder, "rust", None), getattr(builder, "vendor", None)
        )
        if uses_lock and lock_target.exists():
            keep_lock = not frontend.should_overwrite(lock_target, args.OVERWRITE)

        draft = Draft(
            selection=selection,
            ctx=ctx,
            config=config,
            nixpkgs=nixpkgs,
            src_expr=src_expr,
            src=src,
            src_dir=src_dir,
            signals=signals,
            out_dir=out_dir,
            keep_cargo_lock=keep_lock,
        )
        text = await render(draft, builder)

    with open(out_path, "w", encoding="utf-8") as fh:
        fh.write(text)
    logger.info("Wrote %s", out_path)

    if args.COMMIT or config.commit:
        await commit_files([out_path, *draft.extra_files], selection.pname, selection.version)
    return ExitCodes.SUCCESS.value


def _setup_logging(args) -> None:
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.LOG_LEVEL_ENV] = str(args.LOG_LEVEL).upper()
    configure_logging(getattr(args, "LOG_FILE", None))


def main():
    """Main function of the program."""
    args = parse_args()
    _setup_logging(args)

    try:
        code = asyncio.run(run(args))
    except CommandError as exc:
        logger.error("%s: %s", exc, exc.detail())
        sys.exit(exc.exit_code.value)
    except NixDraftError as exc:
        cause = f" ({exc.__cause__})" if exc.__cause__ else ""
        logger.error("%s%s", exc, cause)
        sys.exit(exc.exit_code.value)
    except KeyboardInterrupt:
        sys.exit(ExitCodes.USER_ABORT.value)
    sys.exit(code)


if __name__ == "__main__":
    main()

"""Compile-and-run strategy for C and C++ fragments.

Every fragment is written to its own file inside the document workspace
(``<workspace>/<document>/``), built with the strategy named by its ``compile``
option and, unless ``run=false``, executed once per argument set. A
"Compilation Command Line" summary is always spliced after the fragment,
followed by one "Execution Command Line" summary per argument set.

Options

`compile`
: ``sh``/``cpp`` (``g++``), ``c`` (``gcc``), ``openmp`` (``g++ -fopenmp``),
  ``mpi`` (``mpicxx``), ``make`` (``make <exe>``) or ``cmake``
  (``cmake -B <build> .`` then ``cmake --build <build>``).

`comp-args`
: Compiler flags, split like a shell would.

`filename` / `exec`
: Source filename and executable name. Filenames starting with ``snippet_``
  (or the ``snippet`` option) are wrapped in a ``main`` function.

`build`
: CMake build directory, ``build`` by default.

`args`
: ``;``-separated argument sets, one run each.

`inputs`
: Text written to the program's stdin; ``\\n`` sequences become newlines.

`np`
: Process count for ``mpirun`` when compiled with ``mpi``.

Build files (``cmake`` and ``make`` fragments carrying the execution option)
are written verbatim next to the sources before anything is compiled.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging
from pathlib import Path

from bs4 import BeautifulSoup
from bs4.element import Tag

from runsmith.core.config import COMPILE_STRATEGIES
from runsmith.core.context import EngineContext
from runsmith.core.exceptions import (
    ArtifactMissingError,
    CompilationError,
    ExecutionError,
    RunsmithError,
)
from runsmith.core.rules import tree_processor
from runsmith.core.tree import append_content, example_block, insert_after, literal_block

from .fragments import SourceFragment, discover_fragments, is_execution_enabled
from .gateway import ExecutionRequest, ExecutionResult
from .policy import ErrorPolicy


logger = logging.getLogger(__name__)

ARG_SETS_DELIMITER = ";"
SNIPPET_PREFIX = "snippet_"
EXECUTABLE_SUFFIX = ".exe"
DEFAULT_CMAKE_BUILD_DIR = "build"

COMPILE_TITLE = "Compilation Command Line"
EXECUTION_TITLE = "Execution Command Line"
RESULTS_TITLE = "Results"

RESULT_ROLE = "dynamic-cpp-result"
ERROR_ROLE = "dynamic-cpp-result-error"
COMPILE_COMMAND_ROLE = "compile-command"
EXECUTION_COMMAND_ROLE = "execution-command"
SIDECAR_ROLE = "sidecar"

CPP_SCAFFOLD = """\
#include <iostream>
#include <string>
#include <string_view>
#include <cassert>

int main()
{{
   {code}
}}"""

C_SCAFFOLD = """\
#include <stdio.h>
#include <stdlib.h>
#include <string.h>
#include <assert.h>

int main(void)
{{
   {code}
   return 0;
}}"""


@dataclass(frozen=True, slots=True)
class Toolchain:
    """Language-specific defaults for compiled fragments."""

    name: str
    suffix: str
    compiler: str
    default_flags: str
    scaffold: str


TOOLCHAINS: dict[str, Toolchain] = {
    "cpp": Toolchain("C++", ".cpp", "g++", "-std=c++17", CPP_SCAFFOLD),
    "c++": Toolchain("C++", ".cpp", "g++", "-std=c++17", CPP_SCAFFOLD),
    "cxx": Toolchain("C++", ".cpp", "g++", "-std=c++17", CPP_SCAFFOLD),
    "c": Toolchain("C", ".c", "gcc", "-std=c11", C_SCAFFOLD),
}


@dataclass(frozen=True, slots=True)
class CompileTarget:
    """Source file, build strategy and expected artifact of one fragment."""

    fragment: SourceFragment
    toolchain: Toolchain
    strategy: str
    source_dir: Path
    source_path: Path
    build_dir: str
    executable: str

    @property
    def artifact(self) -> Path:
        """Return the path the build is expected to produce."""
        return self.source_dir / self.build_dir / self.executable

    @property
    def relative_executable(self) -> str:
        """Return the executable path as shown on the command line."""
        return f"{self.build_dir or '.'}/{self.executable}"


@dataclass(frozen=True, slots=True)
class RunOutcome:
    """Captured output of one execution of a compiled artifact."""

    args: str
    command_line: str
    inputs: str
    stdout: str
    stderr: str
    returncode: int


def wrap_snippet(code: str, toolchain: Toolchain) -> str:
    """Wrap a bare snippet in a minimal runnable program."""
    return toolchain.scaffold.format(code=code)


def is_snippet(fragment: SourceFragment, filename: str) -> bool:
    """Return True when the fragment is a statement list rather than a program."""
    return filename.startswith(SNIPPET_PREFIX) or fragment.is_option("snippet")


def resolve_strategy(fragment: SourceFragment, default: str) -> str:
    """Return the build strategy declared by ``fragment``."""
    return (fragment.attribute("compile") or default).strip().lower()


def prepare_target(fragment: SourceFragment, context: EngineContext) -> CompileTarget:
    """Write the fragment source into the document workspace."""
    toolchain = TOOLCHAINS.get(fragment.language)
    if toolchain is None:
        raise CompilationError(f"Unsupported language: {fragment.language}")

    strategy = resolve_strategy(fragment, context.config.default_compile)
    filename = fragment.attribute("filename") or f"fragment-{fragment.index}{toolchain.suffix}"
    executable = fragment.attribute("exec") or (Path(filename).stem + EXECUTABLE_SUFFIX)
    build_dir = ""
    if strategy == "cmake":
        build_dir = fragment.attribute("build") or DEFAULT_CMAKE_BUILD_DIR

    source_dir = context.document_workspace
    source_dir.mkdir(parents=True, exist_ok=True)
    source_path = source_dir / filename
    code = wrap_snippet(fragment.code, toolchain) if is_snippet(fragment, filename) else fragment.code
    logger.info("Writing %s code to %s", toolchain.name, source_path)
    source_path.write_text(code, encoding="utf-8")

    return CompileTarget(
        fragment=fragment,
        toolchain=toolchain,
        strategy=strategy,
        source_dir=source_dir,
        source_path=source_path,
        build_dir=build_dir,
        executable=executable,
    )


def build_requests(target: CompileTarget, context: EngineContext) -> list[ExecutionRequest]:
    """Return the build tool invocations for ``target``, in order."""
    config = context.config
    fragment = target.fragment
    source = target.source_path.name
    executable = target.executable
    flags = (fragment.attribute("comp-args") or target.toolchain.default_flags).split()

    def _request(command: str, *args: str) -> ExecutionRequest:
        return ExecutionRequest(
            command=command,
            args=tuple(args),
            cwd=target.source_dir,
            max_buffer=config.max_buffer,
            timeout=config.timeout,
        )

    strategy = target.strategy
    if strategy in {"sh", "cpp"}:
        return [_request("g++", *flags, source, "-o", executable)]
    if strategy == "openmp":
        return [_request("g++", *flags, "-fopenmp", source, "-o", executable)]
    if strategy == "c":
        return [_request("gcc", *flags, source, "-o", executable)]
    if strategy == "mpi":
        return [_request("mpicxx", *flags, source, "-o", executable)]
    if strategy == "make":
        return [_request("make", executable)]
    if strategy == "cmake":
        return [
            _request("cmake", "-B", target.build_dir, "."),
            _request("cmake", "--build", target.build_dir),
        ]
    raise CompilationError(f"Unknown compile strategy '{strategy}'")


def compile_target(
    requests: Sequence[ExecutionRequest], context: EngineContext
) -> str:
    """Run the build invocations, returning their combined stdout."""
    outputs: list[str] = []
    for request in requests:
        context.emitter.event("compile", {"command": request.display()})
        result = context.runner.run(request, error=CompilationError, check=True)
        if result.stdout:
            outputs.append(result.stdout)
    return "".join(outputs)


def parse_argument_sets(raw: str | None) -> list[str]:
    """Split the ``args`` option into argument sets; no sets means one bare run."""
    if not raw:
        return [""]
    sets = [chunk.strip() for chunk in raw.split(ARG_SETS_DELIMITER)]
    return [chunk for chunk in sets if chunk] or [""]


def decode_inputs(raw: str | None) -> str:
    """Expand literal ``\\n`` sequences of the ``inputs`` option."""
    return (raw or "").replace("\\n", "\n")


def launcher_prefix(target: CompileTarget, context: EngineContext) -> list[str]:
    """Return the process launcher placed before the executable, if any."""
    if target.strategy != "mpi":
        return []
    processes = target.fragment.attribute("np") or str(context.config.default_processes)
    return ["mpirun", "-np", processes]


def display_command(target: CompileTarget, args: str, context: EngineContext) -> str:
    """Return the command line of one run as shown in its summary."""
    prefix = launcher_prefix(target, context)
    return " ".join(filter(None, [*prefix, target.relative_executable, args]))


def run_target(target: CompileTarget, args: str, context: EngineContext) -> RunOutcome:
    """Execute the built artifact with one argument set."""
    artifact = target.artifact
    if not artifact.exists():
        raise ArtifactMissingError(artifact)

    inputs = decode_inputs(target.fragment.attribute("inputs"))
    prefix = launcher_prefix(target, context)
    argv = args.split()
    if prefix:
        command, launcher_args = prefix[0], [*prefix[1:], target.relative_executable]
    else:
        command, launcher_args = str(artifact.resolve()), []

    request = ExecutionRequest(
        command=command,
        args=(*launcher_args, *argv),
        cwd=target.source_dir,
        stdin=inputs or None,
        max_buffer=context.config.max_buffer,
        timeout=context.config.timeout,
    )
    command_line = display_command(target, args, context)
    context.emitter.event("execute", {"command": command_line})
    result: ExecutionResult = context.runner.run(request, error=ExecutionError)
    return RunOutcome(
        args=args,
        command_line=command_line,
        inputs=inputs,
        stdout=result.stdout,
        stderr=result.stderr,
        returncode=result.returncode,
    )


def _results_block(
    soup: BeautifulSoup, fragment: SourceFragment, stdout: str, stderr: str = ""
) -> Tag:
    block = example_block(soup, RESULTS_TITLE, opened=fragment.opened)
    nodes: list[Tag] = []
    if stdout or not stderr:
        nodes.append(literal_block(soup, stdout.rstrip("\n"), role=RESULT_ROLE))
    if stderr:
        nodes.append(literal_block(soup, stderr.rstrip("\n"), role=ERROR_ROLE))
    return append_content(block, nodes)


def compilation_summary(
    soup: BeautifulSoup,
    fragment: SourceFragment,
    commands: Sequence[str],
    *,
    stdout: str = "",
    stderr: str = "",
) -> Tag:
    """Create the summary listing the build commands and their output."""
    display = "\n".join(f"$ {command}" for command in commands)
    block = example_block(soup, COMPILE_TITLE, roles=(SIDECAR_ROLE,), collapsible=False)
    nodes = [literal_block(soup, display, role=COMPILE_COMMAND_ROLE)]
    if stdout or stderr:
        nodes.append(_results_block(soup, fragment, stdout, stderr))
    return append_content(block, nodes)


def execution_summary(
    soup: BeautifulSoup, fragment: SourceFragment, outcome: RunOutcome
) -> Tag:
    """Create the summary of one run: command line, stdin and captured output."""
    display = f"$ {outcome.command_line}"
    if outcome.inputs:
        display = f"{display}\n{outcome.inputs}"
    block = example_block(soup, EXECUTION_TITLE, roles=(SIDECAR_ROLE,), collapsible=False)
    if outcome.args:
        title = block.find("div", class_="title")
        if isinstance(title, Tag):
            title.string = f"{EXECUTION_TITLE} with arguments "
            code = soup.new_tag("code")
            code.string = outcome.args
            title.append(code)
    nodes = [
        literal_block(soup, display, role=EXECUTION_COMMAND_ROLE),
        _results_block(soup, fragment, outcome.stdout, outcome.stderr),
    ]
    return append_content(block, nodes)


def write_build_files(root: BeautifulSoup, context: EngineContext) -> list[Path]:
    """Write ``cmake``/``make`` fragments verbatim into the document workspace."""
    languages = context.config.build_file_languages
    fragments = discover_fragments(root, languages, option=context.config.execute_option)
    written: list[Path] = []
    for fragment in fragments:
        filename = fragment.attribute("filename") or languages[fragment.language]
        target_dir = context.document_workspace
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / filename
        context.emitter.event("build_file", {"path": str(path)})
        path.write_text(fragment.code + "\n", encoding="utf-8")
        written.append(path)
    context.state.build_files.extend(written)
    return written


def _process_fragment(
    root: BeautifulSoup,
    fragment: SourceFragment,
    context: EngineContext,
    policy: ErrorPolicy,
) -> None:
    strategy = resolve_strategy(fragment, context.config.default_compile)
    if strategy not in COMPILE_STRATEGIES:
        context.emitter.warning(
            f"Skipping {fragment.language} fragment #{fragment.index}: "
            f"unknown compile strategy '{strategy}'."
        )
        return

    try:
        target = prepare_target(fragment, context)
        requests = build_requests(target, context)
    except CompilationError as exc:
        policy.fragment_failed(fragment, exc)
        return

    commands = [request.display() for request in requests]
    try:
        stdout = compile_target(requests, context)
    except CompilationError as exc:
        context.state.run_failures += 1
        summary = compilation_summary(root, fragment, commands, stderr=exc.stderr or str(exc))
        insert_after(fragment.node, summary)
        policy.fragment_failed(fragment, exc)
        return

    context.state.compiled.append(str(target.source_path))
    anchor = compilation_summary(root, fragment, commands, stdout=stdout)
    insert_after(fragment.node, anchor)

    if (fragment.attribute("run") or "true").strip().lower() == "false":
        return

    for args in parse_argument_sets(fragment.attribute("args")):
        try:
            outcome = run_target(target, args, context)
        except ExecutionError as exc:
            context.state.run_failures += 1
            failed = RunOutcome(
                args=args,
                command_line=display_command(target, args, context),
                inputs=decode_inputs(fragment.attribute("inputs")),
                stdout=exc.stdout,
                stderr=exc.stderr or str(exc),
                returncode=-1,
            )
            insert_after(anchor, execution_summary(root, fragment, failed))
            policy.fragment_failed(fragment, exc)
            return
        context.state.runs += 1
        if outcome.returncode != 0:
            context.state.run_failures += 1
        summary = execution_summary(root, fragment, outcome)
        insert_after(anchor, summary)
        anchor = summary
        policy.check_run(
            fragment,
            command=outcome.command_line,
            returncode=outcome.returncode,
            stdout=outcome.stdout,
            stderr=outcome.stderr,
        )


@tree_processor(priority=20, name="compiled_fragments", after=("notebook_session",))
def process_compiled(root: BeautifulSoup, context: EngineContext) -> None:
    """Build and run dynamic C/C++ fragments, splicing their summaries."""
    config = context.config
    if not is_execution_enabled(context.attributes, config.enable_attribute):
        return

    write_build_files(root, context)
    fragments = discover_fragments(root, config.compiled_languages, option=config.execute_option)
    if not fragments:
        return

    policy = ErrorPolicy(context.emitter)
    for fragment in fragments:
        try:
            _process_fragment(root, fragment, context, policy)
        except RunsmithError:
            raise
        except OSError as exc:
            error = CompilationError(f"Unable to prepare {fragment.language} fragment: {exc}")
            error.__cause__ = exc
            policy.fragment_failed(fragment, error)


__all__ = [
    "ARG_SETS_DELIMITER",
    "COMPILE_TITLE",
    "EXECUTION_TITLE",
    "TOOLCHAINS",
    "CompileTarget",
    "RunOutcome",
    "Toolchain",
    "build_requests",
    "compilation_summary",
    "compile_target",
    "decode_inputs",
    "display_command",
    "execution_summary",
    "launcher_prefix",
    "parse_argument_sets",
    "prepare_target",
    "process_compiled",
    "run_target",
    "write_build_files",
]

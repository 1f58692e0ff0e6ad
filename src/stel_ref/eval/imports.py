from __future__ import annotations

import logging
import os
from typing import Any, Callable

from ..runtime import Builtins, Frame, StelImportError, StlValue
from .common import token_kind

logger = logging.getLogger(__name__)

ModuleRunner = Callable[[str, Frame], StlValue]

def resolve_import_path(raw: str, frame: Frame) -> str:
    """Resolve relative to the importing file, or the working directory for plain source."""
    base = os.path.dirname(frame.path) if frame.path else os.getcwd()
    return os.path.abspath(os.path.join(base, raw))

def load_module(path: str, raw: str, frame: Frame, run_module: ModuleRunner) -> Frame:
    session = frame.session

    if path in session.loading:
        chain = " -> ".join(session.loading + [path])
        raise StelImportError(f"Circular import of '{raw}' ({chain})")

    cached = session.modules.get(path)
    if cached is not None:
        logger.debug("import cache hit: %s", path)
        return cached

    try:
        with open(path, encoding="utf-8") as fh:
            source = fh.read()
    except OSError as exc:
        raise StelImportError(f"Cannot import '{raw}': {exc.strerror or exc}") from None

    logger.debug("importing %s", path)
    module_frame = Frame(source=source, path=path, session=session)
    session.loading.append(path)

    try:
        run_module(source, module_frame)
    finally:
        session.loading.pop()

    session.modules[path] = module_frame
    return module_frame

def exec_import_stmt(children: list[Any], frame: Frame, run_module: ModuleRunner) -> None:
    """
    import "path"

    Every top-level binding of the module not starting with `_` is merged into
    the importing frame; const bindings stay const. Built-ins seeded into the
    module's root frame are not re-exported.
    """
    path_tok = children[0]
    if token_kind(path_tok) != 'STRING':
        raise StelImportError("import expects a path string")

    raw = str(path_tok.value)
    module = load_module(resolve_import_path(raw, frame), raw, frame, run_module)

    for name, value in module.vars.items():
        if name.startswith('_'):
            continue
        if Builtins.stdlib_functions.get(name) is value:
            continue
        if frame.vars.get(name) is value:
            continue

        frame.define(name, value, const=name in module.consts)

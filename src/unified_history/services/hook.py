"""Shell startup block that routes interactive history through the store."""

from __future__ import annotations

import shlex
from pathlib import Path

from unified_history.errors import UsageError

BLOCK_START = "# >>> unified-history initialize >>>"
BLOCK_END = "# <<< unified-history initialize <<<"

SUPPORTED_SHELLS = ("bash",)

_BASH_TEMPLATE = """\
{start}
# !! This block is managed by unified-history !!
export HISTFILE={store}
export HISTSIZE={retention}
export HISTFILESIZE=-1
export HISTTIMEFORMAT="%F %T "
shopt -s histappend
__uhist_sync() {{ builtin history -a; builtin history -c; builtin history -r; }}
case ";${{PROMPT_COMMAND:-}};" in
  *";__uhist_sync;"*) ;;
  *) PROMPT_COMMAND="__uhist_sync${{PROMPT_COMMAND:+;$PROMPT_COMMAND}}" ;;
esac
# an existing EXIT trap is left in place
if [ -z "$(trap -p EXIT)" ]; then trap 'builtin history -a' EXIT; fi
{end}
"""


def render_hook(store_path: Path, retention: int, shell: str = "bash") -> str:
    """Return the block to source from the shell's rc file."""
    if shell not in SUPPORTED_SHELLS:
        raise UsageError(f"Unsupported shell '{shell}' (supported: {', '.join(SUPPORTED_SHELLS)})")
    return _BASH_TEMPLATE.format(
        start=BLOCK_START,
        end=BLOCK_END,
        store=shlex.quote(str(store_path)),
        retention=retention,
    )

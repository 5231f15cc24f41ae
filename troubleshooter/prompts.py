"""
Prompt Assembly

Helpers that turn a chat request into the message list sent to the LLM.
"""

import json
from typing import Any, Dict, List, Optional

MAX_HISTORY_MESSAGES = 12
MAX_SCRIPTS = 3
MAX_CHARS_PER_SCRIPT = 6000

BASE_SYSTEM_PROMPT = """You are an enterprise infrastructure troubleshooting agent specializing in:
- Networking (switches, routers, VLANs, routing, STP)
- Server OS/Services (Linux, Windows, logs, performance)
- Scripts/Automation (PowerShell, Python, Bash, Ansible, Terraform, YAML, JSON)
- Hardware/Components (iDRAC, iLO, IPMI, RAID, thermals, PSU, ECC)

OPERATING RULES:
1. Diagnostics-first: Always start by clarifying scope, impact, recent changes, and collecting evidence
2. Ticket-safe output: Never request or display secrets (keys, passwords). Recommend redaction for sensitive data
3. Be explicit and structured: Provide commands/steps AND explain what to look for in the output
4. Safety priority: Avoid risky or production-impacting changes unless explicit APPROVAL is confirmed
5. Script references: When scripts are provided, reference them by NAME and cite approximate line ranges

RESPONSE FORMAT (always follow this structure):
A) Quick Triage (2-6 bullet points summarizing the situation)
B) Likely Causes (ranked by probability with brief explanation)
C) Evidence to Collect (specific commands + what to look for in output)
D) Decision Tree / Next Steps (conditional logic based on findings)
E) Remediation Plan (ONLY if APPROVED: change steps + rollback + validation)

"""

APPROVED_SUFFIX = """
APPROVAL STATUS: ✓ APPROVED
You may provide remediation plans that modify production configuration. Always include:
- Explicit change steps with commands
- Rollback procedure
- Validation steps to confirm success
- Risk assessment and prerequisites (backups, maintenance window, etc.)
"""

NOT_APPROVED_SUFFIX = """
APPROVAL STATUS: ✗ NOT APPROVED
You are in diagnostics-only mode. Do NOT provide production-impacting remediation steps.
Focus on data collection, analysis, and decision points. Suggest safe mitigations only.
"""


def parse_json_list(raw: Any) -> List[Any]:
    """Accept a list or a JSON-encoded list from a form field; anything else is []."""
    if not raw:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    return raw if isinstance(raw, list) else []


def approval_state(message: str) -> str:
    head = (message or "").split("\n")[0]
    return "approved" if "APPROVAL: APPROVED" in head else "not_approved"


def build_system_prompt(state: str) -> str:
    suffix = APPROVED_SUFFIX if state == "approved" else NOT_APPROVED_SUFFIX
    return BASE_SYSTEM_PROMPT + suffix


def normalize_history(history: Any) -> List[Dict[str, str]]:
    """Keep the last user/assistant turns with non-empty text content."""
    if not isinstance(history, list):
        return []
    kept = [
        item for item in history
        if isinstance(item, dict)
        and item.get("role") in ("user", "assistant")
        and isinstance(item.get("content"), str)
        and item["content"].strip()
    ]
    return [
        {"role": item["role"], "content": item["content"].strip()}
        for item in kept[-MAX_HISTORY_MESSAGES:]
    ]


def add_line_numbers(text: str) -> str:
    return "\n".join(f"{i:>4} | {line}" for i, line in enumerate(str(text).split("\n"), start=1))


def truncate_text(text: str, max_chars: int) -> str:
    """Keep the head and tail of long text around a truncation marker."""
    if len(text) <= max_chars:
        return text
    half = max_chars // 2
    return (
        text[:half]
        + f"\n\n[... TRUNCATED: showing first and last {half} characters of {len(text)} total ...]\n\n"
        + text[-half:]
    )


def format_script_block(meta: Dict[str, Any], content: str) -> str:
    numbered = add_line_numbers(truncate_text(content, MAX_CHARS_PER_SCRIPT))
    return (
        f"--- SCRIPT: {meta.get('name')} ({meta.get('language')}) ---\n"
        f"{numbered}\n"
        f"--- END SCRIPT ---"
    )


def build_user_content(message: str, script_blocks: List[str]) -> str:
    if not script_blocks:
        return message
    return message + "\n\n[ATTACHED SCRIPTS]\n" + "\n\n".join(script_blocks)


def build_messages(
    message: str,
    history: List[Dict[str, str]],
    script_blocks: List[str],
    image_data_url: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Assemble the full chat completion message list.

    Args:
        message: Raw user message (its first line may carry the approval marker)
        history: Normalized prior turns
        script_blocks: Formatted script attachments
        image_data_url: Optional base64 data URL of an attached screenshot

    Returns:
        System prompt, history and the new user turn
    """
    messages: List[Dict[str, Any]] = [
        {"role": "system", "content": build_system_prompt(approval_state(message))},
        *history,
    ]

    user_content = build_user_content(message, script_blocks)
    if image_data_url:
        messages.append({
            "role": "user",
            "content": [
                {"type": "text", "text": user_content},
                {"type": "image_url", "image_url": {"url": image_data_url, "detail": "high"}},
            ],
        })
    else:
        messages.append({"role": "user", "content": user_content})
    return messages

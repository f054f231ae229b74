"""Prompt templates offered to the client."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from mcp.types import GetPromptResult, Prompt, PromptArgument, PromptMessage, TextContent


def analyze_deployment(appName: str, issue: Optional[str] = None) -> str:
    problem = f" with the following problem: {issue}" if issue else ""
    return (
        f'Analyze the deployment of the application "{appName}"{problem}.\n\n'
        "Please:\n"
        "1. List the related containers\n"
        "2. Check the recent logs\n"
        "3. Check the status of the services\n"
        "4. Suggest possible solutions\n"
        "5. Document what was found\n\n"
        "Context: I work in DevOps and need help debugging and documenting this deployment."
    )


def request_documentation(subject: str, audience: Optional[str] = None) -> str:
    readers = audience or "engineers joining the team"
    return (
        f'Write complete documentation for "{subject}", aimed at {readers}.\n\n'
        "Use the available tools to inspect the real state (containers, git history, "
        "configuration files) instead of guessing, and cover:\n"
        "1. Overview and purpose\n"
        "2. Architecture and the services involved\n"
        "3. Setup and local development\n"
        "4. Configuration and environment variables\n"
        "5. Deployment and day-to-day operations\n"
        "6. Troubleshooting, with the commands used to diagnose common failures\n\n"
        "Write it in Markdown, ready to be committed as a README."
    )


@dataclass(frozen=True)
class PromptSpec:
    prompt: Prompt
    render: Callable[..., str]


PROMPTS = {
    spec.prompt.name: spec
    for spec in (
        PromptSpec(
            Prompt(
                name="analyze_deployment",
                description="Ask for a step-by-step analysis of an application's deployment.",
                arguments=[
                    PromptArgument(name="appName", description="Application name", required=True),
                    PromptArgument(name="issue", description="Specific problem, if any", required=False),
                ],
            ),
            analyze_deployment,
        ),
        PromptSpec(
            Prompt(
                name="request_documentation",
                description="Ask for full documentation of a project or service.",
                arguments=[
                    PromptArgument(name="subject", description="Project or service to document", required=True),
                    PromptArgument(name="audience", description="Intended readers", required=False),
                ],
            ),
            request_documentation,
        ),
    )
}


def get_prompt(name: str, arguments: Optional[dict[str, str]] = None) -> GetPromptResult:
    """Render prompt ``name``; raises ValueError for unknown prompts or missing arguments."""
    spec = PROMPTS.get(name)
    if spec is None:
        raise ValueError(f"Unknown prompt: {name}")

    arguments = arguments or {}
    kwargs = {}
    for arg in spec.prompt.arguments or []:
        value = arguments.get(arg.name)
        if value:
            kwargs[arg.name] = value
        elif arg.required:
            raise ValueError(f"Missing required argument '{arg.name}' for prompt '{name}'")

    return GetPromptResult(
        description=spec.prompt.description,
        messages=[
            PromptMessage(role="user", content=TextContent(type="text", text=spec.render(**kwargs))),
        ],
    )

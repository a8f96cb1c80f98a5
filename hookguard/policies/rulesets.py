"""
Built-in rule sets used by the guard policies.

Order matters inside each set: the first matching rule supplies the
explanation shown to the user.
"""

from typing import Dict, Optional

from ..rules import PatternKind, Rule, RuleSet, load_rule_sets, merge_rule_sets


PATH = PatternKind.PATH

IRREVERSIBLE = "This command could cause irreversible damage."


DANGEROUS_COMMANDS = RuleSet(
    "dangerous-commands",
    (
        Rule(r"rm\s+-rf\s+[/~]", f"Recursive delete of a root or home path. {IRREVERSIBLE}", name="rm-root"),
        Rule(r"rm\s+-rf\s+\*", f"Recursive delete of every file in the directory. {IRREVERSIBLE}", name="rm-glob"),
        Rule(r"rm\s+-rf\s+\.\.", f"Recursive delete of a parent directory. {IRREVERSIBLE}", name="rm-parent"),
        Rule(r">\s*/dev/sd[a-z]", f"Writing directly to a block device. {IRREVERSIBLE}", name="write-device"),
        Rule(r"mkfs\.", f"Formatting a filesystem. {IRREVERSIBLE}", name="mkfs"),
        Rule(r"dd\s+if=.*of=/dev", f"Raw copy onto a device. {IRREVERSIBLE}", name="dd-device"),
        Rule(r"chmod\s+-R\s+777", f"Recursively making files world-writable. {IRREVERSIBLE}", name="chmod-777"),
        Rule(r"curl.*\|\s*(ba)?sh", f"Piping a download straight into a shell. {IRREVERSIBLE}", name="curl-sh"),
        Rule(r"wget.*\|\s*(ba)?sh", f"Piping a download straight into a shell. {IRREVERSIBLE}", name="wget-sh"),
        Rule(
            r"git\s+push.*--force\s+(origin\s+)?(main|master)",
            f"Force-pushing to a protected branch rewrites shared history. {IRREVERSIBLE}",
            name="force-push-protected",
        ),
        Rule(
            r"git\s+reset\s+--hard\s+origin",
            f"Hard reset discards all local commits and changes. {IRREVERSIBLE}",
            name="reset-hard-origin",
        ),
        Rule(r"drop\s+database", f"Dropping a database. {IRREVERSIBLE}", name="drop-database", ignore_case=True),
        Rule(r"drop\s+table", f"Dropping a table. {IRREVERSIBLE}", name="drop-table", ignore_case=True),
        Rule(r"truncate\s+table", f"Truncating a table. {IRREVERSIBLE}", name="truncate-table", ignore_case=True),
        Rule(
            r"delete\s+from\s+\w+\s*;?\s*$",
            f"DELETE without a WHERE clause removes every row. {IRREVERSIBLE}",
            name="delete-all-rows",
            ignore_case=True,
        ),
    ),
    description="Shell commands that are blocked outright",
)

RISKY_COMMANDS = RuleSet(
    "risky-commands",
    (
        Rule(r"npm\s+publish", "Publishing to npm registry", name="npm-publish"),
        Rule(r"docker\s+push", "Pushing Docker image", name="docker-push"),
        Rule(r"kubectl\s+delete", "Deleting Kubernetes resources", name="kubectl-delete"),
        Rule(r"terraform\s+destroy", "Destroying Terraform infrastructure", name="terraform-destroy"),
        Rule(r"aws\s+.*delete", "Deleting AWS resources", name="aws-delete"),
    ),
    description="Shell commands that are allowed with a warning",
)

SENSITIVE_FILES = RuleSet(
    "sensitive-files",
    (
        Rule("*.env", "Environment files hold credentials.", kind=PATH, name="dotenv"),
        Rule("*.env.?*", "Environment files hold credentials.", kind=PATH, name="dotenv-variant"),
        Rule("*credentials.json", "Credential files hold secrets.", kind=PATH, name="credentials-json"),
        Rule("*secrets.json", "Secret files hold secrets.", kind=PATH, name="secrets-json"),
        Rule("*.pem", "Certificates and private keys must not be exposed.", kind=PATH, name="pem"),
        Rule("*.key", "Private keys must not be exposed.", kind=PATH, name="key"),
        Rule("*id_rsa*", "SSH private keys must not be exposed.", kind=PATH, name="ssh-rsa"),
        Rule("*id_ed25519*", "SSH private keys must not be exposed.", kind=PATH, name="ssh-ed25519"),
        Rule("*.p12", "Key stores must not be exposed.", kind=PATH, name="p12"),
        Rule("*.pfx", "Key stores must not be exposed.", kind=PATH, name="pfx"),
        Rule("*keystore*", "Key stores must not be exposed.", kind=PATH, name="keystore"),
    ),
    description="File names whose contents are secret",
)

ALLOWED_FILES = RuleSet(
    "allowed-files",
    (
        Rule(".env.example", "Template without real values.", kind=PATH, name="env-example"),
        Rule(".env.template", "Template without real values.", kind=PATH, name="env-template"),
        Rule(".env.sample", "Template without real values.", kind=PATH, name="env-sample"),
        Rule("*.env.example", "Template without real values.", kind=PATH, name="any-env-example"),
    ),
    description="Exceptions to sensitive-files",
)

HARDCODED_SECRET = "Content appears to contain hardcoded credentials. Use environment variables instead."

SECRET_PATTERNS = RuleSet(
    "secret-patterns",
    (
        Rule(r"api[_-]?key\s*[:=]\s*[\"'][a-zA-Z0-9]{20,}[\"']", HARDCODED_SECRET, name="api-key", ignore_case=True),
        Rule(r"secret[_-]?key\s*[:=]\s*[\"'][a-zA-Z0-9]{20,}[\"']", HARDCODED_SECRET, name="secret-key", ignore_case=True),
        Rule(r"password\s*[:=]\s*[\"'][^\"']{8,}[\"']", HARDCODED_SECRET, name="password", ignore_case=True),
        Rule(r"AKIA[0-9A-Z]{16}", "Content contains an AWS access key id.", name="aws-access-key"),
        Rule(r"-----BEGIN (RSA |DSA |EC )?PRIVATE KEY-----", "Content contains a private key.", name="private-key"),
    ),
    description="Content that looks like a credential",
)

EXPOSES_SECRETS = "This command may expose sensitive data. Avoid printing environment variables that hold secrets."

SECRET_EXPOSING_COMMANDS = RuleSet(
    "secret-exposing-commands",
    (
        Rule(r"cat\s+.*\.env", EXPOSES_SECRETS, name="cat-env"),
        Rule(r"echo\s+.*\$\{?[A-Z_]*KEY", EXPOSES_SECRETS, name="echo-key", ignore_case=True),
        Rule(r"echo\s+.*\$\{?[A-Z_]*SECRET", EXPOSES_SECRETS, name="echo-secret", ignore_case=True),
        Rule(r"echo\s+.*\$\{?[A-Z_]*PASSWORD", EXPOSES_SECRETS, name="echo-password", ignore_case=True),
        Rule(r"printenv", EXPOSES_SECRETS, name="printenv"),
        Rule(r"export\s+.*=.*[\"'][^\"']{20,}[\"']", EXPOSES_SECRETS, name="export-literal"),
    ),
    description="Shell commands that print secrets",
)

TEST_FILES = RuleSet(
    "test-files",
    (
        Rule(r"\.(test|spec)\.(ts|tsx|js|jsx)$", "JavaScript/TypeScript test file", name="jest-vitest"),
        Rule(r"(^|/)test_[^/]+\.py$", "pytest test module", name="pytest"),
    ),
    description="Paths of test files",
)


BUILTIN_RULE_SETS: Dict[str, RuleSet] = {
    rule_set.name: rule_set
    for rule_set in (
        DANGEROUS_COMMANDS,
        RISKY_COMMANDS,
        SENSITIVE_FILES,
        ALLOWED_FILES,
        SECRET_PATTERNS,
        SECRET_EXPOSING_COMMANDS,
        TEST_FILES,
    )
}


def load_builtin_rule_sets(rules_file: Optional[str] = None) -> Dict[str, RuleSet]:
    """Built-in rule sets, extended with the rules from a YAML file if given."""
    if not rules_file:
        return dict(BUILTIN_RULE_SETS)
    return merge_rule_sets(BUILTIN_RULE_SETS, load_rule_sets(rules_file))

"""
retcheck rules package.

This package contains the rules that analyze code for issues. Rules are
discovered when ``engine.registry.discover_rules(["rules"])`` imports the
package's modules.

To add a new rule:
1. Create a Python file in this directory (e.g., my_rule.py)
2. Define your rule class implementing the Rule protocol
3. Create a module-level RULES list containing your rule instance

Example rule structure:

```python
from engine.types import RuleMeta, Requires, RuleContext, Finding

class MyRule:
    meta = RuleMeta(
        id="my.rule",
        category="errors",
        tier=0,
        priority="P2",
        description="Detects my specific issue",
        langs=["typescript"]
    )

    requires = Requires(syntax=True)

    def visit(self, ctx: RuleContext) -> Iterable[Finding]:
        yield Finding(
            rule=self.meta.id,
            message="Found an issue",
            file=ctx.file_path,
            start_byte=0,
            end_byte=10,
            severity="warn"
        )

RULES = [MyRule()]
```
"""

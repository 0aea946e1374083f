# pegmatch

Pattern matching with parsing expression grammars. You build patterns
from small pieces with Python operators. Patterns are compiled to
instructions for a small backtracking machine. Captures turn a match
into values.

The package is a library only. It has no command-line tool.

## Installing

```
pip install .
```

Run the tests with:

```
pip install .[test]
pytest
```

## Building patterns

Everything below lives in `pegmatch.pattern`.

| Constructor | Matches |
|---|---|
| `P("abc")` | the literal string (a `str` or `bytes`; `str` characters must be below 256) |
| `P(n)` | exactly `n` characters; `P(-n)` succeeds only if fewer than `n` are left |
| `P(True)` / `P(False)` | always succeeds / always fails |
| `P({...})` | a grammar (see below); a list or tuple is a grammar keyed from 1 |
| `P(func)` | calls `func` at match time, as `Cmt(True, func)` would |
| `S("aeiou")` | any one character of the set |
| `R("az", "09")` | any one character in the ranges |
| `B(p)` | succeeds if `p` matches just before the current position; `p` must have a fixed length of at most 255 and no captures |
| `V("name")` | a reference to a grammar rule |

Operators combine patterns:

| Expression | Meaning |
|---|---|
| `p1 * p2` | `p1` followed by `p2` |
| `p1 + p2` | ordered choice: `p1`, or else `p2` |
| `p1 - p2` | `p1` where `p2` does not match |
| `p ** n` | at least `n` repetitions (`n >= 0`), or at most `-n` when `n` is negative |
| `-p` | succeeds where `p` fails, and consumes nothing |
| `+p` | succeeds where `p` succeeds, and consumes nothing |
| `p / value` | a function, query, string or number capture, chosen by the type of `value` |

Strings, numbers, booleans, dicts and functions are turned into
patterns wherever a pattern is expected, so `P("a") * "b"` and
`"a" + P("b")` both work. `p ** n` with `n >= 0` raises `PatternError`
when `p` can match the empty string.

## Matching

```python
from pegmatch.pattern import P, R, C, match

digits = R("09") ** 1
print(match(digits, "123abc"))          # 4, the position after the match
print(match(C(digits), "123abc"))       # '123'
print(match(digits, "abc"))             # None
```

`Pattern.match(subject, init=1, *args)` does the same thing as a
method. The subject is a `str` or `bytes`. `init` is the 1-based start
position; a negative `init` counts back from the end of the subject,
and positions outside the subject are clamped to it. Extra arguments
are available to `Carg` captures.

Without capture values, a successful match returns the 1-based
position just after the matched text. With captures, it returns their
values: one value on its own, or a tuple when there are several. A
failed match returns `None`.

## Captures

| Constructor | Produces |
|---|---|
| `C(p)` | the matched substring, then the values of captures nested in `p` |
| `Cc(*values)` | the given values |
| `Cp()` | the current 1-based position |
| `Carg(n)` | the `n`-th extra argument passed to `match` |
| `Cb(name)` | the values of the most recent group named `name` |
| `Cg(p, name=None)` | a group; anonymous when `name` is `None`, otherwise it only gives values to `Ct` and `Cb` |
| `Ct(p)` | a dict holding nested values under 1, 2, … and named groups under their names |
| `Cs(p)` | the match with each nested capture replaced by its value |
| `Cf(p, func)` | folds the nested values with `func` |
| `Cmt(p, func)` | calls `func(subject, position, *captures)` while matching |
| `p / "fmt %1"` | a string built from a format; `%0` is the whole match, `%1`–`%9` are the nested captures |
| `p / mapping` | looks the first value up in the mapping; no value if it is missing |
| `p / func` | calls `func` with the nested values |
| `p / n` | selects the `n`-th nested value (`0` gives no value) |

User functions return `None` for no values, a tuple for several values,
or any other object for a single value.

For `Cmt`, the first result decides the match: `None` or `False` make
it fail, `True` keeps the current position, and an integer is the new
1-based position (it may not go back, nor past the end). Any further
results become capture values.

Errors found while evaluating captures, such as a missing back
reference or an invalid format index, raise `PatternError`
(from `pegmatch.tree`).

## Grammars

A dict is a grammar. Key `1` names the initial rule, or holds the
initial pattern itself:

```python
from pegmatch.pattern import P, V, match

balanced = P({
    1: "S",
    "S": "(" * V("S") ** 0 * ")",
})
print(match(balanced, "(()())"))  # 7
```

Left-recursive rules, loops whose body can match the empty string,
references to rules that do not exist, and `V` used outside any
grammar all raise `PatternError`. A grammar holds at most 250 rules.

## Other functions

- `locale(table=None)` fills a mapping (or a new dict) with ASCII
  character-class patterns: `alnum`, `alpha`, `cntrl`, `digit`,
  `graph`, `lower`, `print`, `punct`, `space`, `upper`, `xdigit`.
- `version()` returns the version string.
- `set_max_stack(limit)` sets the limit of the backtrack stack
  (default 400; the stack always has room for at least 400 entries).
  Going past it raises `PatternError`.
- `ptype(value)` returns `"pattern"` for a pattern and `None` otherwise.
- `Pattern.tree_text(fix=False)` and `Pattern.code_text()` return a
  readable dump of the pattern tree and of the compiled program.

## Lower-level modules

- `pegmatch.charset` — `Charset`, an immutable set of byte values.
- `pegmatch.tree` — `Node`, `Tag`, `CapKind` and `PatternError`.
- `pegmatch.analysis` — properties of trees (`nullable`, `fixed_len`,
  `get_first`, …).
- `pegmatch.grammar` — `build_grammar` and `final_fix`.
- `pegmatch.compiler` — `compile_tree`, turning a fixed tree into a
  list of `Instruction`s.
- `pegmatch.vm` — `execute`, running compiled code on a subject.
- `pegmatch.captures` — `get_captures`, turning a capture list into
  values.
- `pegmatch.printing` — text listings of charsets, programs, trees and
  capture lists.
"""Project scaffold: the synthetic file tree a run produces.

The shape is a pure function of (name, story): the same inputs always
yield the same paths and contents.  Stage reports (coverage, review)
take an injected random.Random so their numbers are reproducible.
"""
from __future__ import annotations

import json
import random
import re
import textwrap
from dataclasses import dataclass, field

from .models import FileNode, GeneratedDirectory, join_path, make_directory, make_file

DEFAULT_PROJECT_NAME = "generated-project"
MANIFEST_NAME = "package.json"

_FEATURE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "api": ("api", "rest", "endpoint", "crud", "express", "server", "backend"),
    "cli": ("cli", "command line", "command-line", "terminal tool", "boilerplate"),
    "realtime": ("socket", "real-time", "realtime", "chat", "websocket", "live"),
    "react": ("react", "component", "frontend", "dashboard"),
}

_DATABASE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "mongodb": ("mongo",),
    "postgres": ("postgres", "sql"),
}

_ENTITY_CANDIDATES = (
    "todo", "task", "user", "product", "order", "message", "post",
    "note", "book", "room", "event", "item",
)


@dataclass(frozen=True)
class StoryAnalysis:
    """Requirements extracted from a user story."""
    features: tuple[str, ...]
    entity: str
    database: str | None = None
    keywords: tuple[str, ...] = field(default_factory=tuple)

    @property
    def requirement_count(self) -> int:
        return len(self.features) + (1 if self.database else 0) + 1


def slugify(name: str) -> str:
    """Turn a project name into a directory-safe slug."""
    slug = re.sub(r"[^a-z0-9._-]+", "-", name.strip().lower())
    slug = slug.strip("-.")
    return slug or DEFAULT_PROJECT_NAME


def analyze_story(story: str) -> StoryAnalysis:
    """Detect features, the main entity and a database from *story*."""
    text = story.lower()
    matched: list[str] = []
    features: list[str] = []
    for feature, words in _FEATURE_KEYWORDS.items():
        hits = [w for w in words if w in text]
        if hits:
            features.append(feature)
            matched.extend(hits)
    if not features:
        features.append("api")

    database = None
    for db, words in _DATABASE_KEYWORDS.items():
        if any(w in text for w in words):
            database = db
            break

    entity = "item"
    for candidate in _ENTITY_CANDIDATES:
        if re.search(rf"\b{candidate}s?\b", text):
            entity = candidate
            break

    return StoryAnalysis(
        features=tuple(features),
        entity=entity,
        database=database,
        keywords=tuple(dict.fromkeys(matched)),
    )


def _pascal(word: str) -> str:
    return "".join(part.capitalize() for part in re.split(r"[-_\s]+", word) if part)


def _manifest(slug: str, story: str, analysis: StoryAnalysis) -> str:
    dependencies: dict[str, str] = {}
    dev_dependencies: dict[str, str] = {
        "typescript": "^5.4.0",
        "ts-node": "^10.9.2",
        "jest": "^29.7.0",
        "ts-jest": "^29.1.2",
        "@types/node": "^20.11.0",
        "@types/jest": "^29.5.12",
    }
    if "api" in analysis.features:
        dependencies.update({"express": "^4.19.2", "cors": "^2.8.5"})
        dev_dependencies.update({"@types/express": "^4.17.21", "supertest": "^6.3.4"})
    if "cli" in analysis.features:
        dependencies.update({"commander": "^12.0.0", "chalk": "^5.3.0"})
    if "realtime" in analysis.features:
        dependencies["socket.io"] = "^4.7.5"
    if "react" in analysis.features:
        dependencies.update({"react": "^18.2.0", "react-dom": "^18.2.0"})
    if analysis.database == "mongodb":
        dependencies["mongoose"] = "^8.2.0"
    elif analysis.database == "postgres":
        dependencies["pg"] = "^8.11.3"

    manifest = {
        "name": slug,
        "version": "1.0.0",
        "description": story,
        "main": "dist/index.js",
        "scripts": {
            "build": "tsc",
            "start": "node dist/index.js",
            "dev": "ts-node src/index.ts",
            "test": "jest",
        },
        "dependencies": dict(sorted(dependencies.items())),
        "devDependencies": dict(sorted(dev_dependencies.items())),
    }
    return json.dumps(manifest, indent=2) + "\n"


def _readme(name: str, story: str, analysis: StoryAnalysis) -> str:
    lines = [f"# {name}", "", story, "", "## Features", ""]
    lines += [f"- {feature}" for feature in analysis.features]
    lines += ["", "## Getting started", "", "```bash", "npm install", "npm run dev", "```"]
    return "\n".join(lines) + "\n"


_TSCONFIG = textwrap.dedent("""\
    {
      "compilerOptions": {
        "target": "ES2020",
        "module": "commonjs",
        "outDir": "dist",
        "rootDir": "src",
        "strict": true,
        "esModuleInterop": true
      },
      "include": ["src"]
    }
    """)


def _index_ts(analysis: StoryAnalysis) -> str:
    lines = []
    if "api" in analysis.features:
        lines += [
            "import express from 'express';",
            "import cors from 'cors';",
            "import { router } from './api';",
        ]
    if "realtime" in analysis.features:
        lines += ["import { createServer } from 'http';", "import { attachSocket } from './socket';"]
    if "cli" in analysis.features:
        lines += ["import { run } from './cli';"]
    lines.append("")
    if "api" in analysis.features:
        lines += [
            "const app = express();",
            "app.use(cors());",
            "app.use(express.json());",
            "app.use(router);",
            "",
        ]
        if "realtime" in analysis.features:
            lines += [
                "const server = createServer(app);",
                "attachSocket(server);",
                "server.listen(process.env.PORT || 3000);",
            ]
        else:
            lines += [
                "const port = process.env.PORT || 3000;",
                "app.listen(port, () => console.log(`Listening on ${port}`));",
            ]
    elif "realtime" in analysis.features:
        lines += ["const server = createServer();", "attachSocket(server);", "server.listen(3000);"]
    elif "cli" in analysis.features:
        lines += ["run(process.argv);"]
    else:
        lines += ["export {};"]
    return "\n".join(lines) + "\n"


def _api_ts(entity: str) -> str:
    model = _pascal(entity)
    plural = f"{entity}s"
    return textwrap.dedent(f"""\
        import {{ Router }} from 'express';
        import {{ {model}Store }} from './models/{model}';

        export const router = Router();
        const store = new {model}Store();

        router.get('/api/{plural}', (_req, res) => res.json(store.list()));
        router.get('/api/{plural}/:id', (req, res) => {{
          const found = store.get(req.params.id);
          return found ? res.json(found) : res.status(404).end();
        }});
        router.post('/api/{plural}', (req, res) => res.status(201).json(store.create(req.body)));
        router.put('/api/{plural}/:id', (req, res) => res.json(store.update(req.params.id, req.body)));
        router.delete('/api/{plural}/:id', (req, res) => {{
          store.remove(req.params.id);
          res.status(204).end();
        }});
        """)


def _model_ts(entity: str, database: str | None) -> str:
    model = _pascal(entity)
    header = ""
    if database == "mongodb":
        header = "// Persisted with mongoose in production builds.\n"
    elif database == "postgres":
        header = "// Persisted with pg in production builds.\n"
    return header + textwrap.dedent(f"""\
        export interface {model} {{
          id: string;
          title: string;
          createdAt: string;
        }}

        export class {model}Store {{
          private items = new Map<string, {model}>();

          list(): {model}[] {{
            return [...this.items.values()];
          }}

          get(id: string): {model} | undefined {{
            return this.items.get(id);
          }}

          create(data: Partial<{model}>): {model} {{
            const item = {{ id: String(this.items.size + 1), title: data.title ?? '', createdAt: new Date().toISOString() }};
            this.items.set(item.id, item);
            return item;
          }}

          update(id: string, data: Partial<{model}>): {model} | undefined {{
            const current = this.items.get(id);
            if (!current) return undefined;
            const next = {{ ...current, ...data, id }};
            this.items.set(id, next);
            return next;
          }}

          remove(id: string): void {{
            this.items.delete(id);
          }}
        }}
        """)


def _cli_ts(slug: str) -> str:
    return textwrap.dedent(f"""\
        import {{ Command }} from 'commander';

        export function run(argv: string[]): void {{
          const program = new Command('{slug}');
          program
            .command('generate <name>')
            .description('Generate boilerplate for <name>')
            .action((name: string) => console.log(`Generated ${{name}}`));
          program.parse(argv);
        }}
        """)


_SOCKET_TS = textwrap.dedent("""\
    import { Server as HttpServer } from 'http';
    import { Server } from 'socket.io';

    export function attachSocket(server: HttpServer): Server {
      const io = new Server(server);
      io.on('connection', (socket) => {
        socket.on('join', (room: string) => socket.join(room));
        socket.on('message', (room: string, text: string) => io.to(room).emit('message', text));
      });
      return io;
    }
    """)


def _component_tsx(entity: str) -> str:
    model = _pascal(entity)
    return textwrap.dedent(f"""\
        import React from 'react';

        export function {model}List({{ items }}: {{ items: string[] }}) {{
          return (
            <ul>
              {{items.map((item) => <li key={{item}}>{{item}}</li>)}}
            </ul>
          );
        }}
        """)


def _test_ts(entity: str, analysis: StoryAnalysis) -> str:
    model = _pascal(entity)
    if "api" in analysis.features:
        return textwrap.dedent(f"""\
            import {{ {model}Store }} from '../src/models/{model}';

            describe('{model}Store', () => {{
              it('creates and lists {entity}s', () => {{
                const store = new {model}Store();
                store.create({{ title: 'first' }});
                expect(store.list()).toHaveLength(1);
              }});
            }});
            """)
    return textwrap.dedent(f"""\
        describe('{entity}', () => {{
          it('loads', () => {{
            expect(true).toBe(true);
          }});
        }});
        """)


def build_project(name: str, story: str) -> GeneratedDirectory:
    """Build the project tree for (name, story)."""
    slug = slugify(name)
    analysis = analyze_story(story)
    entity = analysis.entity
    model = _pascal(entity)

    def f(rel: str, content: str) -> FileNode:
        return make_file(join_path(slug, rel), content)

    src: list[FileNode] = [f("src/index.ts", _index_ts(analysis))]
    if "api" in analysis.features:
        src.append(f("src/api.ts", _api_ts(entity)))
        src.append(make_directory(
            join_path(slug, "src/models"),
            [f(f"src/models/{model}.ts", _model_ts(entity, analysis.database))],
        ))
    if "cli" in analysis.features:
        src.append(f("src/cli.ts", _cli_ts(slug)))
    if "realtime" in analysis.features:
        src.append(f("src/socket.ts", _SOCKET_TS))
    if "react" in analysis.features:
        src.append(make_directory(
            join_path(slug, "src/components"),
            [f(f"src/components/{model}List.tsx", _component_tsx(entity))],
        ))

    return make_directory(slug, [
        f(MANIFEST_NAME, _manifest(slug, story, analysis)),
        f("README.md", _readme(name.strip(), story.strip(), analysis)),
        f("tsconfig.json", _TSCONFIG),
        make_directory(join_path(slug, "src"), src),
        make_directory(join_path(slug, "tests"), [
            f(f"tests/{entity}.test.ts", _test_ts(entity, analysis)),
        ]),
    ])


def build_coverage_report(
    project: GeneratedDirectory,
    source_paths: list[str],
    rng: random.Random,
) -> GeneratedDirectory:
    """A coverage summary to merge into *project*'s root."""
    per_file = {
        path: round(rng.uniform(72.0, 100.0), 1)
        for path in source_paths
    }
    total = round(sum(per_file.values()) / len(per_file), 1) if per_file else 100.0
    summary = {"total": {"lines": {"pct": total}}, "files": per_file}
    root = project.name
    return make_directory(root, [
        make_directory(join_path(root, "coverage"), [
            make_file(
                join_path(root, "coverage/summary.json"),
                json.dumps(summary, indent=2) + "\n",
            ),
        ]),
    ])


def build_review(
    project: GeneratedDirectory,
    reviewed_paths: list[str],
    rng: random.Random,
) -> GeneratedDirectory:
    """A REVIEW.md to merge into *project*'s root."""
    score = rng.randint(82, 98)
    checked = "\n".join(f"- [x] `{path}`" for path in reviewed_paths)
    content = textwrap.dedent(f"""\
        # Code review

        Quality score: **{score}/100**

        ## Files reviewed

        {{checked}}
        """).replace("{checked}", checked)
    root = project.name
    return make_directory(root, [make_file(join_path(root, "REVIEW.md"), content)])

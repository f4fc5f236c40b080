"""
corpusdb: A mergeable fact store for per-compilation-unit program facts.

corpusdb keeps facts extracted from many compilation units and unions them
into one corpus, enabling you to:
- Register facts against a declarative schema (relations, interning tables, IDs)
- Persist per-unit stores as a single file or as one file per table
- Merge independently numbered stores without ID collisions or duplicate values

Usage:
    from corpusdb.core import Tables, default_schema

    unit = Tables(default_schema())
    (build,) = unit.register("builds", crate_name="serde", crate_hash=7, edition="2018")
    unit.save(Path("serde.msgpack"))

    corpus = Tables.load_multifile_or_default(Path("database"), unit.schema)
    corpus.merge(unit)
    corpus.store_multifile(Path("database"))
"""

__version__ = "0.1.0"

"""
PageRank Calculation Module

Power iteration over the link graph between indexed pages. Uses the
classic non-normalized form: every page starts at 1.0 and each iteration
computes 0.15 + 0.85 * sum(rank[q] / outdegree[q]) over inbound pages q.
Pages without outbound links redistribute nothing.
"""

import logging
from typing import Callable

from crawlrank.db.search import open_db, update_info

logger = logging.getLogger(__name__)

DAMPING = 0.85
BASE_RANK = 1 - DAMPING

_SAVE_BATCH_SIZE = 5000

StateCallback = Callable[[str], None]


def _iter_batches(iterable, size):
    batch = []
    for item in iterable:
        batch.append(item)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def iterate_pagerank(
    nodes: set[int],
    in_links: dict[int, list[int]],
    out_degree: dict[int, int],
    iterations: int,
    on_iteration: Callable[[int], None] | None = None,
) -> dict[int, float]:
    """Run exactly `iterations` rounds from a uniform seed of 1.0."""
    ranks = {p: 1.0 for p in nodes}
    for i in range(iterations):
        if on_iteration is not None:
            on_iteration(i + 1)
        ranks = {
            p: BASE_RANK
            + DAMPING * sum(ranks[q] / out_degree[q] for q in in_links.get(p, ()))
            for p in nodes
        }
    return ranks


def calculate_pagerank(
    db_path: str, iterations: int = 20, on_state: StateCallback | None = None
) -> int:
    """
    Calculate PageRank of every indexed page and save it to `indexed`.

    Also refreshes the info aggregate and the query planner statistics.

    Returns:
        Number of pages scored
    """

    def state(message: str) -> None:
        logger.info(message)
        if on_state is not None:
            on_state(message)

    con = open_db(db_path)
    try:
        state("collecting inbound links")
        nodes = {pid for (pid,) in con.execute("SELECT pageid FROM indexed")}

        in_links: dict[int, list[int]] = {}
        out_degree: dict[int, int] = {p: 0 for p in nodes}
        edges = con.execute(
            """
            SELECT DISTINCT l.fromid, l.toid
            FROM link l
            JOIN indexed f ON f.pageid = l.fromid
            JOIN indexed t ON t.pageid = l.toid
            """
        )
        total_edges = 0
        for from_id, to_id in edges:
            in_links.setdefault(to_id, []).append(from_id)
            out_degree[from_id] += 1
            total_edges += 1

        n = len(nodes)
        dangling = sum(1 for p in nodes if out_degree[p] == 0)
        logger.info(
            f"Graph loaded: {n} nodes, {total_edges} edges, {dangling} dangling"
        )

        ranks = iterate_pagerank(
            nodes,
            in_links,
            out_degree,
            iterations,
            on_iteration=lambda i: state(f"iteration #{i}"),
        )

        state("filling index")
        _save_page_ranks(con, ranks)

        state("updating info")
        update_info(con)
        con.commit()

        state("analyzing tables")
        con.execute("ANALYZE")
        con.commit()

        state("done")
        return n

    finally:
        con.close()


def _save_page_ranks(con, ranks: dict[int, float]) -> None:
    if not ranks:
        return
    cur = con.cursor()
    for batch in _iter_batches(ranks.items(), _SAVE_BATCH_SIZE):
        cur.executemany(
            "UPDATE indexed SET pagerank = ? WHERE pageid = ?",
            [(rank, pid) for pid, rank in batch],
        )
    con.commit()
    cur.close()
    logger.info(f"Saved {len(ranks)} page ranks.")

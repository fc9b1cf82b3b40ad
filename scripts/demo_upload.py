import asyncio
import logging

from src.browser.browser import RepositoryBrowser
from src.core.models import UploadCandidate
from src.remote.memory import MemoryHost
from src.upload.builder import CommitBuilder
from src.upload.reconciler import RefreshReconciler
from src.upload.state import CommitTransition


def show_progress(transition: CommitTransition):
    suffix = f" ({transition.file_name})" if transition.file_name else ""
    print(f"  [{transition.progress:5.1f}%] {transition.state.value}{suffix}")


async def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    host = MemoryHost()
    repo = host.create_repository(
        "octocat",
        "demo",
        files={"README.md": b"# Demo\n", "docs/index.md": b"Hello World\n"},
    )
    print(f"Created demo repo {repo.full_name}")

    browser = RepositoryBrowser(host, notify=lambda n: print(f"  {n.kind}: {n.message}"))
    await browser.select_repository(repo)
    await browser.navigate(next(e for e in browser.contents if e.is_dir))
    print(f"Browsing /{browser.path} on {browser.branch}: {[e.name for e in browser.contents]}")

    builder = CommitBuilder(host)
    builder.subscribe(show_progress)
    files = [
        UploadCandidate.from_bytes("guide.md", b"Getting started\n"),
        UploadCandidate.from_bytes("logo.svg", b"<svg xmlns='http://www.w3.org/2000/svg'/>\n"),
    ]
    result = await builder.commit(files, "Add guide and logo", repo, browser.branch, browser.path)
    print(f"Created commit {result.commit_sha[:7]} on {result.branch} (parent {result.parent_sha[:7]})")

    reconciler = RefreshReconciler(browser)
    await reconciler.reconcile(repo, result.branch, result.path)

    print("\n--- Listing ---")
    for entry in browser.contents:
        print(f"* {entry.sha[:7]} {entry.type:4} {entry.size:6} {entry.path}")

if __name__ == "__main__":
    asyncio.run(main())

import logging
from datetime import datetime, timedelta
from typing import Callable

from app.blog.exceptions import NotFound
from app.blog.schemas import ReconcileReport
from app.blog.stores import CommentStore, PostStore

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Repairs divergence between the comments table and the posts' embedded
    summaries left behind by partial failures.

    Posts are scanned before comments: a summary seen in the post scan always
    belongs to a comment written earlier, so a summary without a comment in
    the later scan really is dangling.

    Comments younger than `orphan_grace` are skipped because their create may
    still be between the comment write and the summary append.
    """

    def __init__(
        self,
        comments: CommentStore,
        posts: PostStore,
        orphan_grace: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.comments = comments
        self.posts = posts
        self.orphan_grace = orphan_grace
        self.clock = clock

    async def run(self) -> ReconcileReport:
        report = ReconcileReport()

        posts = {p.id: p for p in await self.posts.find_all()}
        comments = await self.comments.find_all()
        comment_ids = {c.id for c in comments}

        for post in posts.values():
            for summary in post.comments:
                if summary.comment_id in comment_ids:
                    continue
                if await self.posts.remove_comment_summary(post.id, summary.comment_id):
                    report.dangling_summaries_removed += 1
                    logger.info(f"Removed dangling summary {summary.comment_id} from post {post.id}")

        cutoff = self.clock() - self.orphan_grace
        for comment in comments:
            if comment.created_at > cutoff:
                continue

            post = posts.get(comment.post_id)
            if post is None:
                await self._collect_orphan(comment.id, comment.post_id, report)
                continue

            if post.has_comment(comment.id):
                continue

            # Re-read so a summary appended since the scan is not duplicated
            try:
                fresh = await self.posts.find_by_id(post.id)
            except NotFound:
                await self._collect_orphan(comment.id, comment.post_id, report)
                continue
            if fresh.has_comment(comment.id):
                continue

            try:
                await self.posts.append_comment_summary(post.id, comment.summary())
            except NotFound:
                await self._collect_orphan(comment.id, comment.post_id, report)
                continue
            report.missing_summaries_appended += 1
            logger.info(f"Re-appended missing summary {comment.id} to post {post.id}")

        logger.info(
            f"Reconciliation done: removed={report.dangling_summaries_removed} "
            f"appended={report.missing_summaries_appended} orphans={report.orphans_deleted}"
        )
        return report

    async def _collect_orphan(self, comment_id: str, post_id: str, report: ReconcileReport) -> None:
        try:
            await self.comments.delete_by_id(comment_id)
        except NotFound:
            return
        report.orphans_deleted += 1
        logger.warning(f"Deleted orphaned comment {comment_id} (post {post_id} does not exist)")

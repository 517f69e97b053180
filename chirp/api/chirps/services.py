# chirp/api/chirps/services.py
import re
import uuid
import logging
from collections import Counter
from typing import Optional, Dict, Any, List, Tuple
from firebase_admin import firestore

from chirp.models.chirp import Chirp, Mention, CommunityTag, Attachment, AttachmentType
from chirp.models.community import is_admin
from chirp.models.notification import NotificationType
from chirp.models.user import User
from chirp.services.firestore_service import fetch_documents_by_ids
from chirp.api.chirps.schemas import normalize_hashtags
from chirp.utils.datetime_utils import DateTimeUtils

# 앞에 글자나 '.'이 붙은 '@'/'#'(예: 이메일 주소)은 멘션/해시태그로 보지 않습니다.
MENTION_PATTERN = r'(?<![\w.])@(\w+)'
HASHTAG_PATTERN = r'(?<![\w.])#(\w+)'
# 답글 삭제 시 따라 내려갈 최대 깊이
MAX_THREAD_DEPTH = 100

class ChirpService:
    """
    chirp(게시글)와 답글 관련 비즈니스 로직을 담당하는 서비스 클래스.
    작성, 답글, 좋아요/공유 토글, 각종 목록 조회와 삭제를 처리합니다.
    """
    def __init__(self, db=None, notification_service=None, storage_service=None):
        self.db = db if db is not None else firestore.client()
        self.chirps_ref = self.db.collection('chirps')
        self.users_ref = self.db.collection('users')
        self.communities_ref = self.db.collection('communities')
        self.notification_service = notification_service
        self.storage_service = storage_service

    # --- 작성 ---
    def _resolve_mentions(self, text: str, mentions: List[Dict[str, Any]]) -> List[Mention]:
        """
        요청에 담긴 멘션과 본문의 '@username'을 실제 사용자와 대조합니다.
        저장되는 username은 항상 대상 사용자의 현재 값이며, 찾을 수 없는 대상은 제외됩니다.
        """
        resolved: Dict[str, Mention] = {}

        for mention in mentions:
            doc = self.users_ref.document(mention['user_id']).get()
            if not doc.exists or not doc.to_dict().get('username'):
                logging.warning(f"멘션 대상 사용자를 찾을 수 없어 제외합니다 (user_id: {mention['user_id']})")
                continue
            user_data = doc.to_dict()
            resolved[user_data['user_id']] = Mention(user_id=user_data['user_id'], username=user_data['username'])

        known_usernames = {m.username for m in resolved.values()}
        usernames = [u.lower() for u in re.findall(MENTION_PATTERN, text) if u.lower() not in known_usernames]
        for user_data in fetch_documents_by_ids(self.users_ref, 'username', usernames).values():
            resolved.setdefault(user_data['user_id'], Mention(user_id=user_data['user_id'], username=user_data['username']))

        return list(resolved.values())

    def _resolve_community_tags(self, tags: List[Dict[str, Any]]) -> List[CommunityTag]:
        resolved: Dict[str, CommunityTag] = {}
        for tag in tags:
            doc = self.communities_ref.document(tag['community_id']).get()
            if not doc.exists:
                logging.warning(f"태그된 커뮤니티를 찾을 수 없어 제외합니다 (community_id: {tag['community_id']})")
                continue
            community = doc.to_dict()
            resolved[community['community_id']] = CommunityTag(
                community_id=community['community_id'],
                community_username=community['username']
            )
        return list(resolved.values())

    def _build_chirp(self, author: User, submission: Dict[str, Any], community: Optional[Dict[str, Any]] = None,
                     parent_id: Optional[str] = None) -> Chirp:
        text = submission['text']
        hashtags = normalize_hashtags(submission.get('hashtags', []) + re.findall(HASHTAG_PATTERN, text))
        attachments = [
            Attachment(
                type=AttachmentType(a['type']),
                url=a['url'],
                filename=a.get('filename'),
                size=a.get('size')
            )
            for a in submission.get('attachments', [])
        ]
        return Chirp(
            chirp_id=str(uuid.uuid4()),
            text=text,
            author_id=author.user_id,
            author=author.summary(),
            community_id=community['community_id'] if community else None,
            community=_community_summary(community) if community else None,
            parent_id=parent_id,
            hashtags=hashtags,
            mentions=self._resolve_mentions(text, submission.get('mentions', [])),
            community_tags=self._resolve_community_tags(submission.get('community_tags', [])),
            attachments=attachments,
            created_at=DateTimeUtils.now()
        )

    def _notify_mentions(self, chirp: Chirp):
        if not self.notification_service:
            return
        for mention in chirp.mentions:
            self.notification_service.create_notification(
                recipient_id=mention.user_id,
                sender_id=chirp.author_id,
                n_type=NotificationType.MENTION,
                target_id=chirp.chirp_id,
                target_summary=chirp.text[:50]
            )

    def create_chirp(self, author: User, submission: Dict[str, Any]) -> Dict[str, Any]:
        """
        검증된 요청으로 새 chirp를 저장합니다.
        - 온보딩하지 않은 작성자는 PermissionError
        - 커뮤니티 글은 멤버만 작성할 수 있고, 멤버 글쓰기가 꺼져 있으면 관리자만 가능
        """
        if not author.onboarded:
            raise PermissionError("프로필 설정(온보딩)을 먼저 완료해주세요.")

        community = None
        community_id = submission.get('community_id')
        if community_id:
            community_doc = self.communities_ref.document(community_id).get()
            if not community_doc.exists:
                raise ValueError("커뮤니티를 찾을 수 없습니다.")
            community = community_doc.to_dict()
            if author.user_id not in community.get('member_ids', []):
                raise PermissionError("커뮤니티 멤버만 글을 작성할 수 있습니다.")
            if not community.get('settings', {}).get('allow_member_posts', True) and not is_admin(community, author.user_id):
                raise PermissionError("이 커뮤니티는 관리자만 글을 작성할 수 있습니다.")

        chirp = self._build_chirp(author, submission, community=community)
        self.chirps_ref.document(chirp.chirp_id).set(chirp.to_document())
        logging.info(f"chirp 생성 완료 (chirp_id: {chirp.chirp_id}, author: {author.user_id})")

        self._notify_mentions(chirp)
        return self._present(chirp.to_document(), author.user_id)

    def add_reply(self, parent_id: str, author: User, submission: Dict[str, Any]) -> Dict[str, Any]:
        """
        부모 chirp에 답글을 추가합니다.
        답글 ID는 ArrayUnion으로 부모의 children에 더해지므로 한 번만 기록됩니다.
        """
        if not author.onboarded:
            raise PermissionError("프로필 설정(온보딩)을 먼저 완료해주세요.")

        parent_ref = self.chirps_ref.document(parent_id)
        parent_doc = parent_ref.get()
        if not parent_doc.exists:
            raise ValueError("답글을 달 chirp를 찾을 수 없습니다.")
        parent = parent_doc.to_dict()

        reply = self._build_chirp(author, submission, parent_id=parent_id)
        self.chirps_ref.document(reply.chirp_id).set(reply.to_document())
        parent_ref.update({'children': firestore.ArrayUnion([reply.chirp_id])})
        logging.info(f"답글 생성 완료 (chirp_id: {reply.chirp_id}, parent: {parent_id})")

        if self.notification_service:
            self.notification_service.create_notification(
                recipient_id=parent.get('author_id'),
                sender_id=author.user_id,
                n_type=NotificationType.REPLY,
                target_id=parent_id,
                target_summary=reply.text[:50]
            )
        self._notify_mentions(reply)
        return self._present(reply.to_document(), author.user_id)

    # --- 좋아요 / 공유 ---
    def _toggle_membership(self, chirp_id: str, user_id: str, field_name: str) -> Tuple[bool, Dict[str, Any]]:
        chirp_ref = self.chirps_ref.document(chirp_id)
        doc = chirp_ref.get()
        if not doc.exists:
            raise ValueError("chirp를 찾을 수 없습니다.")
        chirp_data = doc.to_dict()

        if user_id in chirp_data.get(field_name, []):
            chirp_ref.update({field_name: firestore.ArrayRemove([user_id])})
            return False, chirp_data

        chirp_ref.update({field_name: firestore.ArrayUnion([user_id])})
        return True, chirp_data

    def toggle_like(self, chirp_id: str, user_id: str) -> bool:
        """좋아요를 누르거나 취소하고, 처리 후 좋아요 상태를 반환합니다."""
        is_liked, chirp_data = self._toggle_membership(chirp_id, user_id, 'likes')
        if is_liked and self.notification_service:
            self.notification_service.create_notification(
                recipient_id=chirp_data.get('author_id'),
                sender_id=user_id,
                n_type=NotificationType.CHIRP_LIKE,
                target_id=chirp_id,
                target_summary=chirp_data.get('text', '')[:50]
            )
        return is_liked

    def toggle_share(self, chirp_id: str, user_id: str) -> bool:
        """공유(리chirp)를 하거나 취소하고, 처리 후 공유 상태를 반환합니다."""
        is_shared, _ = self._toggle_membership(chirp_id, user_id, 'shares')
        return is_shared

    # --- 조회 ---
    def _present(self, chirp_data: Dict[str, Any], viewer_id: Optional[str]) -> Dict[str, Any]:
        """응답용으로 개수와 로그인 사용자 기준 좋아요/공유 여부를 붙입니다."""
        likes = chirp_data.get('likes', [])
        shares = chirp_data.get('shares', [])
        return {
            **chirp_data,
            'like_count': len(likes),
            'share_count': len(shares),
            'reply_count': len(chirp_data.get('children', [])),
            'is_liked': bool(viewer_id) and viewer_id in likes,
            'is_shared': bool(viewer_id) and viewer_id in shares,
        }

    def _blocked_ids(self, viewer_id: Optional[str]) -> List[str]:
        if not viewer_id:
            return []
        doc = self.users_ref.document(viewer_id).get()
        return doc.to_dict().get('blocked_ids', []) if doc.exists else []

    def _paginate(self, query, viewer_id: Optional[str], limit: int, cursor: Optional[str]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        query = query.order_by('created_at', direction=firestore.Query.DESCENDING)
        if cursor:
            cursor_doc = self.chirps_ref.document(cursor).get()
            if cursor_doc.exists:
                query = query.start_after(cursor_doc)

        chirps = [doc.to_dict() for doc in query.limit(limit).stream()]
        next_cursor = chirps[-1]['chirp_id'] if chirps and len(chirps) == limit else None

        blocked = set(self._blocked_ids(viewer_id))
        return [self._present(c, viewer_id) for c in chirps if c.get('author_id') not in blocked], next_cursor

    def get_feed(self, viewer_id: Optional[str], limit: int = 20, cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """최상위 chirp를 최신순으로 조회합니다. (차단한 사용자의 글은 제외)"""
        return self._paginate(self.chirps_ref.where('parent_id', '==', None), viewer_id, limit, cursor)

    def get_chirp(self, chirp_id: str, viewer_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """chirp 하나와 그 답글 목록(children 순서)을 함께 조회합니다."""
        doc = self.chirps_ref.document(chirp_id).get()
        if not doc.exists:
            return None
        chirp_data = self._present(doc.to_dict(), viewer_id)

        child_ids = chirp_data.get('children', [])
        children = fetch_documents_by_ids(self.chirps_ref, 'chirp_id', child_ids)
        chirp_data['replies'] = [self._present(children[cid], viewer_id) for cid in child_ids if cid in children]
        return chirp_data

    def get_chirps_by_hashtag(self, hashtag: str, viewer_id: Optional[str], limit: int = 20,
                              cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        tags = normalize_hashtags([hashtag])
        if not tags:
            return [], None
        query = self.chirps_ref.where('hashtags', 'array_contains', tags[0]).where('parent_id', '==', None)
        return self._paginate(query, viewer_id, limit, cursor)

    def get_chirps_by_community_tag(self, community_username: str, viewer_id: Optional[str], limit: int = 20,
                                    cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """특정 커뮤니티를 태그한 chirp 목록"""
        query = self.chirps_ref.where('community_tag_usernames', 'array_contains', community_username.lower())
        return self._paginate(query, viewer_id, limit, cursor)

    def get_community_chirps(self, community_id: str, viewer_id: Optional[str], limit: int = 20,
                             cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """커뮤니티에 올라온 최상위 chirp 목록"""
        query = self.chirps_ref.where('community_id', '==', community_id).where('parent_id', '==', None)
        return self._paginate(query, viewer_id, limit, cursor)

    def get_user_chirps(self, author_id: str, viewer_id: Optional[str], limit: int = 20,
                        cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        query = self.chirps_ref.where('author_id', '==', author_id).where('parent_id', '==', None)
        return self._paginate(query, viewer_id, limit, cursor)

    def get_user_replies(self, author_id: str, viewer_id: Optional[str], limit: int = 20) -> List[Dict[str, Any]]:
        """사용자가 남긴 답글 목록 (parent_id가 있는 chirp)"""
        query = self.chirps_ref.where('author_id', '==', author_id).order_by(
            'created_at', direction=firestore.Query.DESCENDING
        )
        replies = []
        for doc in query.stream():
            chirp_data = doc.to_dict()
            if chirp_data.get('parent_id'):
                replies.append(self._present(chirp_data, viewer_id))
                if len(replies) >= limit:
                    break
        return replies

    def get_activity(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """내 chirp에 다른 사용자가 남긴 답글을 최신순으로 반환합니다."""
        child_ids: List[str] = []
        for doc in self.chirps_ref.where('author_id', '==', user_id).stream():
            child_ids.extend(doc.to_dict().get('children', []))

        replies = fetch_documents_by_ids(self.chirps_ref, 'chirp_id', child_ids)
        activity = [r for r in replies.values() if r.get('author_id') != user_id]
        activity.sort(key=lambda r: r['created_at'], reverse=True)
        return [self._present(r, user_id) for r in activity[:limit]]

    def get_trending_hashtags(self, limit: int = 10, sample_size: int = 200) -> List[Dict[str, Any]]:
        """최근 chirp에서 많이 쓰인 해시태그를 집계합니다."""
        query = self.chirps_ref.order_by('created_at', direction=firestore.Query.DESCENDING).limit(sample_size)
        counter = Counter()
        for doc in query.stream():
            counter.update(doc.to_dict().get('hashtags', []))
        return [{"hashtag": tag, "count": count} for tag, count in counter.most_common(limit)]

    # --- 삭제 ---
    def _collect_descendants(self, chirp_id: str) -> List[Dict[str, Any]]:
        """parent_id를 따라 모든 하위 답글을 모읍니다. 순환 참조가 있어도 멈추도록 방문 기록을 남깁니다."""
        descendants = []
        visited = {chirp_id}
        frontier = [chirp_id]
        depth = 0
        while frontier and depth < MAX_THREAD_DEPTH:
            next_frontier = []
            for parent_id in frontier:
                for doc in self.chirps_ref.where('parent_id', '==', parent_id).stream():
                    child = doc.to_dict()
                    if child['chirp_id'] in visited:
                        continue
                    visited.add(child['chirp_id'])
                    descendants.append(child)
                    next_frontier.append(child['chirp_id'])
            frontier = next_frontier
            depth += 1
        return descendants

    def _thread_community_id(self, chirp_data: Dict[str, Any]) -> Optional[str]:
        """답글은 community_id가 없으므로 parent_id를 따라 올라가 최상위 chirp의 커뮤니티를 찾습니다."""
        visited = {chirp_data['chirp_id']}
        current = chirp_data
        for _ in range(MAX_THREAD_DEPTH):
            if current.get('community_id') or not current.get('parent_id'):
                break
            parent_id = current['parent_id']
            if parent_id in visited:
                break
            visited.add(parent_id)
            parent_doc = self.chirps_ref.document(parent_id).get()
            if not parent_doc.exists:
                break
            current = parent_doc.to_dict()
        return current.get('community_id')

    def delete_chirp(self, chirp_id: str, user_id: str) -> int:
        """
        chirp와 모든 하위 답글을 삭제하고, 삭제한 문서 수를 반환합니다.
        작성자 본인 또는 해당 커뮤니티 관리자만 삭제할 수 있습니다. (커뮤니티 글에 달린 답글 포함)
        """
        chirp_ref = self.chirps_ref.document(chirp_id)
        doc = chirp_ref.get()
        if not doc.exists:
            raise ValueError("chirp를 찾을 수 없습니다.")
        chirp_data = doc.to_dict()

        if chirp_data.get('author_id') != user_id:
            community_id = self._thread_community_id(chirp_data)
            community_doc = self.communities_ref.document(community_id).get() if community_id else None
            if not (community_doc and community_doc.exists and is_admin(community_doc.to_dict(), user_id)):
                raise PermissionError("chirp를 삭제할 권한이 없습니다.")

        targets = [chirp_data] + self._collect_descendants(chirp_id)
        for target in targets:
            if self.storage_service:
                for attachment in target.get('attachments', []):
                    self.storage_service.delete_by_url(attachment.get('url'))
            self.chirps_ref.document(target['chirp_id']).delete()

        parent_id = chirp_data.get('parent_id')
        if parent_id:
            parent_ref = self.chirps_ref.document(parent_id)
            if parent_ref.get().exists:
                parent_ref.update({'children': firestore.ArrayRemove([chirp_id])})

        logging.info(f"chirp 삭제 완료 (chirp_id: {chirp_id}, 삭제 문서 수: {len(targets)})")
        return len(targets)

def _community_summary(community: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "community_id": community.get("community_id"),
        "name": community.get("name"),
        "username": community.get("username"),
        "image": community.get("image"),
    }

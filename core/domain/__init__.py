"""
Domain 패키지

도메인 엔티티, 오류, 포트 인터페이스를 정의합니다.
외부 의존성 없이 순수한 비즈니스 규칙만 포함합니다.

주요 엔티티:
- Account: 임시 메일 계정 정보
- Message: 메일 메시지 정보
- Attachment: 첨부파일 메타데이터
- SessionSnapshot: 재시작 후 세션 재개용 최소 상태
- SessionView: UI가 관찰하는 세션 상태
"""

"""
설정 패키지

환경 변수와 .env 파일에서 세션 엔진 설정을 읽습니다.
ENVIRONMENT 값(development, production, testing)에 따라 설정 클래스가 선택됩니다.
"""

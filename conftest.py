# conftest.py
import sys
import os

# このファイルが置いてあるディレクトリ（プロジェクトルート）と tests フォルダを
# sys.path の先頭に追加（contact_form_analyzer / テスト用フェイクを import するため）
ROOT = os.path.dirname(__file__)
TESTS = os.path.join(ROOT, "tests")
sys.path.insert(0, TESTS)
sys.path.insert(0, ROOT)

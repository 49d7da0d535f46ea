# アダプタモジュール
# 外部のブラウザ自動化ライブラリを ChangeSource として接続する

"""HTML bodies served by the upload server."""

from html import escape

MAX_FILES_PER_BATCH = 20

_BASE_STYLE = """
    body { font-family: -apple-system, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f7; color: #1d1d1f; text-align: center; }
    .container { max-width: 500px; margin: 0 auto; background: white; border-radius: 10px; padding: 30px; box-shadow: 0 1px 3px rgba(0,0,0,0.1); }
    .back-link { display: inline-block; background-color: #0071e3; color: white; text-decoration: none; padding: 12px 24px; border-radius: 8px; margin-top: 20px; }
"""

UPLOAD_PAGE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Music Upload</title>
    <style>
        body { font-family: -apple-system, sans-serif; text-align: center; padding: 20px; max-width: 600px; margin: 0 auto; }
        .upload-form { background-color: #f9f9f9; border-radius: 10px; padding: 20px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }
        .button { background-color: #007aff; color: white; border: none; border-radius: 5px; padding: 10px 20px; font-size: 16px; cursor: pointer; width: 100%; margin-top: 15px; }
        .button:disabled { background-color: #cccccc; }
        .note { margin-top: 15px; font-size: 14px; color: #666; }
        #file-input { display: none; }
        #file-list { text-align: left; margin-top: 20px; max-height: 300px; overflow-y: auto; border: 1px solid #ddd; border-radius: 5px; padding: 10px; background-color: white; }
        .file-item { padding: 8px 10px; margin-bottom: 5px; border-radius: 5px; background-color: #f0f0f0; display: flex; justify-content: space-between; }
        .file-size { margin-left: 10px; color: #666; font-size: 12px; }
        .remove-file { color: #ff3b30; cursor: pointer; margin-left: 10px; font-weight: bold; }
        .empty-list { text-align: center; color: #999; padding: 20px 0; }
        #progress-container { display: none; margin-top: 15px; }
        #progress-bar { height: 10px; background-color: #007aff; width: 0%; border-radius: 5px; }
    </style>
</head>
<body>
    <h1>Music Upload</h1>
    <div class="upload-form">
        <form method="post" enctype="multipart/form-data">
            <input type="button" class="button" value="Choose music files" onclick="document.getElementById('file-input').click();">
            <input type="file" id="file-input" name="file" multiple accept="audio/*" onchange="handleFiles(this.files)">
            <div id="file-list"><div class="empty-list">No files selected</div></div>
            <div id="progress-container">
                <div id="progress-bar"></div>
                <div id="current-file"></div>
                <div id="upload-count">0/0</div>
            </div>
            <input type="button" class="button" value="Start upload" id="upload-button" disabled onclick="startUpload()">
        </form>
        <div class="note">
            Supported formats: MP3, WAV, AAC, M4A, FLAC, OGG<br>
            Maximum file size: 500MB<br>
            At most __MAX_FILES__ songs per upload
        </div>
    </div>
    <script>
        var maxFiles = __MAX_FILES__;
        var selectedFiles = [];
        var currentIndex = 0;
        var uploading = false;

        function handleFiles(files) {
            var skipped = 0;
            for (var i = 0; i < files.length; i++) {
                if (selectedFiles.length >= maxFiles) {
                    skipped = files.length - i;
                    break;
                }
                var file = files[i];
                var exists = selectedFiles.some(function(f) { return f.name === file.name && f.size === file.size; });
                if (!exists) {
                    selectedFiles.push(file);
                }
            }
            if (skipped > 0) {
                alert('At most ' + maxFiles + ' songs can be selected, skipped ' + skipped + ' files');
            }
            updateFileList();
            document.getElementById('file-input').value = '';
        }

        function formatFileSize(bytes) {
            if (bytes < 1024) return bytes + ' B';
            if (bytes < 1024 * 1024) return (bytes / 1024).toFixed(1) + ' KB';
            return (bytes / (1024 * 1024)).toFixed(1) + ' MB';
        }

        function updateFileList() {
            var list = document.getElementById('file-list');
            document.getElementById('upload-button').disabled = (selectedFiles.length === 0);
            if (selectedFiles.length === 0) {
                list.innerHTML = '<div class="empty-list">No files selected</div>';
                return;
            }
            list.innerHTML = '';
            var count = document.createElement('div');
            count.textContent = 'Selected ' + selectedFiles.length + '/' + maxFiles + ' songs';
            list.appendChild(count);
            selectedFiles.forEach(function(file, index) {
                var item = document.createElement('div');
                item.className = 'file-item';
                var name = document.createElement('div');
                name.textContent = file.name;
                var size = document.createElement('div');
                size.className = 'file-size';
                size.textContent = formatFileSize(file.size);
                var remove = document.createElement('div');
                remove.className = 'remove-file';
                remove.textContent = 'x';
                remove.onclick = function() {
                    selectedFiles.splice(index, 1);
                    updateFileList();
                };
                item.appendChild(name);
                item.appendChild(size);
                item.appendChild(remove);
                list.appendChild(item);
            });
        }

        function startUpload() {
            if (selectedFiles.length === 0 || uploading) return;
            uploading = true;
            currentIndex = 0;
            document.getElementById('upload-button').disabled = true;
            document.getElementById('progress-container').style.display = 'block';
            uploadNextFile();
        }

        function uploadNextFile() {
            if (currentIndex >= selectedFiles.length) {
                uploading = false;
                document.getElementById('progress-container').style.display = 'none';
                updateFileList();
                if (selectedFiles.length === 0) alert('All files uploaded!');
                return;
            }
            var file = selectedFiles[currentIndex];
            document.getElementById('current-file').textContent = 'Uploading: ' + file.name;
            document.getElementById('progress-bar').style.width = '0%';

            var formData = new FormData();
            formData.append('file', file);
            var xhr = new XMLHttpRequest();
            xhr.open('POST', window.location.href, true);
            xhr.upload.onprogress = function(e) {
                if (e.lengthComputable) {
                    document.getElementById('progress-bar').style.width = (e.loaded / e.total * 100) + '%';
                }
            };
            xhr.onload = function() {
                if (xhr.status >= 200 && xhr.status < 300) {
                    selectedFiles.splice(currentIndex, 1);
                    document.getElementById('upload-count').textContent = currentIndex + '/' + (currentIndex + selectedFiles.length);
                    setTimeout(uploadNextFile, 1000);
                } else {
                    alert('Upload failed: ' + file.name);
                    currentIndex++;
                    uploadNextFile();
                }
            };
            xhr.onerror = function() {
                alert('Upload failed: ' + file.name);
                currentIndex++;
                uploadNextFile();
            };
            xhr.send(formData);
        }
    </script>
</body>
</html>
""".replace("__MAX_FILES__", str(MAX_FILES_PER_BATCH))

_RESULT_PAGE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>{style}
    .icon {{ color: {color}; font-size: 48px; margin-bottom: 20px; }}
    h1 {{ color: {color}; margin-bottom: 20px; }}
    .detail {{ padding: 10px; background-color: {detail_background}; border-radius: 8px; word-break: break-all; margin: 15px 0; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="icon">{icon}</div>
        <h1>{title}</h1>
        <p>{summary}</p>
        <div class="detail">{detail}</div>
        <a href="/" class="back-link">{link_text}</a>
    </div>
</body>
</html>
"""


def upload_page() -> str:
    return UPLOAD_PAGE


def success_page(filename: str, size_text: str) -> str:
    return _RESULT_PAGE.format(
        title="Upload complete",
        style=_BASE_STYLE,
        color="#34c759",
        detail_background="#f2f2f7",
        icon="&#10003;",
        summary=f"The file was uploaded to the device ({escape(size_text)})",
        detail=escape(filename),
        link_text="Upload more",
    )


def error_page(message: str) -> str:
    return _RESULT_PAGE.format(
        title="Upload failed",
        style=_BASE_STYLE,
        color="#ff3b30",
        detail_background="#ffeeee",
        icon="&#10007;",
        summary="An error occurred while processing your request",
        detail=escape(message),
        link_text="Back to upload page",
    )
